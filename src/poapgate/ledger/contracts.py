"""Typed wrappers for the POAP and voting contracts.

Ledger option ids are 1-based; everything above this module uses 0-based
option indices.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from poapgate.errors import LedgerQueryError
from poapgate.ledger.clarity import (
    ClarityResponse,
    list_cv,
    principal_cv,
    string_ascii_cv,
    string_utf8_cv,
    uint_cv,
)
from poapgate.ledger.gateway import LedgerGateway, Signer, TransactionHandle, split_contract_id


def unwrap(value: Any, what: str) -> Any:
    """Return the inner value of ``(ok v)``; raise on ``(err v)``; pass through anything else."""
    if isinstance(value, ClarityResponse):
        if not value.ok:
            msg = f"{what} returned (err {value.value!r})"
            raise LedgerQueryError(msg)
        return value.value
    return value


def _expect(value: Any, kind: type, what: str) -> Any:
    # bool is an int subclass; keep them apart
    if kind is int and isinstance(value, bool):
        value = None
    if not isinstance(value, kind):
        msg = f"{what} returned {type(value).__name__}, expected {kind.__name__}"
        raise LedgerQueryError(msg)
    return value


def event_timestamp(event_date: datetime | int) -> int:
    """Epoch milliseconds, the unit the POAP contract stores."""
    if isinstance(event_date, datetime):
        return int(event_date.timestamp() * 1000)
    return int(event_date)


class PoapContract:
    def __init__(self, gateway: LedgerGateway, contract_id: str) -> None:
        split_contract_id(contract_id)
        self.gateway = gateway
        self.contract_id = contract_id

    async def mint_poap(
        self,
        recipient: str,
        event_name: str,
        event_date: datetime | int,
        image_uri: str,
        signer: Signer,
    ) -> TransactionHandle:
        return await self.gateway.submit_transaction(
            self.contract_id,
            "mint-poap",
            [
                principal_cv(recipient),
                string_ascii_cv(event_name),
                uint_cv(event_timestamp(event_date)),
                string_ascii_cv(image_uri),
            ],
            signer,
        )

    async def has_poap(self, address: str) -> bool:
        value = await self.gateway.query_read_only(
            self.contract_id, "has-poap", [principal_cv(address)], address
        )
        return _expect(unwrap(value, "has-poap"), bool, "has-poap")

    async def get_balance(self, address: str) -> int:
        value = await self.gateway.query_read_only(
            self.contract_id, "get-balance", [principal_cv(address)], address
        )
        return _expect(unwrap(value, "get-balance"), int, "get-balance")


class VotingContract:
    def __init__(self, gateway: LedgerGateway, contract_id: str) -> None:
        self.gateway = gateway
        self.contract_id = contract_id
        self.contract_address, _ = split_contract_id(contract_id)

    async def create_proposal(
        self,
        title: str,
        description: str,
        duration_blocks: int,
        options: list[str],
        signer: Signer,
    ) -> TransactionHandle:
        return await self.gateway.submit_transaction(
            self.contract_id,
            "create-proposal",
            [
                string_utf8_cv(title),
                string_utf8_cv(description),
                uint_cv(duration_blocks),
                list_cv([string_utf8_cv(opt) for opt in options]),
            ],
            signer,
        )

    async def cast_vote(self, ledger_proposal_id: int, option_index: int, signer: Signer) -> TransactionHandle:
        return await self.gateway.submit_transaction(
            self.contract_id,
            "cast-vote",
            [uint_cv(ledger_proposal_id), uint_cv(option_index + 1)],
            signer,
        )

    async def _read(self, function_name: str, args: list, sender: str | None = None) -> Any:
        value = await self.gateway.query_read_only(
            self.contract_id, function_name, args, sender or self.contract_address
        )
        return unwrap(value, function_name)

    async def get_proposal(self, ledger_proposal_id: int) -> dict | None:
        value = await self._read("get-proposal", [uint_cv(ledger_proposal_id)])
        return None if value is None else _expect(value, dict, "get-proposal")

    async def get_proposal_option(self, ledger_proposal_id: int, option_index: int) -> dict | None:
        value = await self._read(
            "get-proposal-option", [uint_cv(ledger_proposal_id), uint_cv(option_index + 1)]
        )
        return None if value is None else _expect(value, dict, "get-proposal-option")

    async def has_voted(self, ledger_proposal_id: int, address: str) -> bool:
        value = await self._read(
            "has-voted", [uint_cv(ledger_proposal_id), principal_cv(address)], sender=address
        )
        return _expect(value, bool, "has-voted")

    async def get_winning_option(self, ledger_proposal_id: int) -> int:
        """0-based index of the option the contract reports as winning."""
        value = await self._read("get-winning-option", [uint_cv(ledger_proposal_id)])
        option_id = _expect(value, int, "get-winning-option")
        if option_id < 1:
            msg = f"get-winning-option returned invalid option id {option_id}"
            raise LedgerQueryError(msg)
        return option_id - 1
