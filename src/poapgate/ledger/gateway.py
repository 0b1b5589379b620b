"""Stacks ledger gateway.

Stateless adapter between the intent pipeline and the Stacks node API:
builds contract calls, hands them to the account holder's wallet for
signing and broadcast, and runs read-only queries against confirmed state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

import httpx
import structlog

from poapgate.errors import LedgerQueryError, TransactionSubmissionError
from poapgate.ledger.clarity import ClarityDecodeError, ClarityValue, deserialize, to_hex

logger = structlog.get_logger()


@dataclass(frozen=True)
class ContractCall:
    """An unsigned contract call, as presented to the wallet."""

    contract_address: str
    contract_name: str
    function_name: str
    function_args: tuple[str, ...]  # 0x-hex serialized Clarity values
    network: str

    @property
    def contract_id(self) -> str:
        return f"{self.contract_address}.{self.contract_name}"


@dataclass(frozen=True)
class TransactionHandle:
    """A broadcast (not yet confirmed) transaction."""

    txid: str
    contract_id: str
    function_name: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class TransactionStatus:
    txid: str
    status: str  # "pending", "success", "abort_by_response", "abort_by_post_condition", "dropped_*"
    result: Any = None

    @property
    def confirmed(self) -> bool:
        return self.status == "success"

    @property
    def pending(self) -> bool:
        return self.status == "pending"


class Signer(Protocol):
    """Wallet capability: signs a contract call and broadcasts it.

    Returns the transaction id. Raises on user rejection, fee problems or
    network failure; the message is surfaced to the account holder.
    """

    async def sign_and_broadcast(self, call: ContractCall) -> str: ...


def split_contract_id(contract_id: str) -> tuple[str, str]:
    """Split ``ADDRESS.name`` into its parts."""
    address, sep, name = contract_id.partition(".")
    if not sep or not address or not name:
        msg = f"Invalid contract id: {contract_id!r}"
        raise ValueError(msg)
    return address, name


def _normalize_txid(txid: str) -> str:
    raw = txid[2:] if txid.startswith("0x") else txid
    if len(raw) != 64:
        msg = f"Malformed transaction id: {txid!r}"
        raise ValueError(msg)
    int(raw, 16)
    return "0x" + raw.lower()


class LedgerGateway:
    """Builds, submits and reads Stacks contract calls."""

    def __init__(
        self,
        api_url: str,
        network: str = "testnet",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.network = network
        self._client = client or httpx.AsyncClient(base_url=self.api_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Writes ──

    async def submit_transaction(
        self,
        contract_id: str,
        function_name: str,
        args: Sequence[ClarityValue],
        signer: Signer,
    ) -> TransactionHandle:
        """Have the wallet sign and broadcast a contract call.

        Returns once the wallet reports broadcast; the transaction is not
        confirmed yet. Failures are never retried here.
        """
        address, name = split_contract_id(contract_id)
        call = ContractCall(
            contract_address=address,
            contract_name=name,
            function_name=function_name,
            function_args=tuple(to_hex(arg) for arg in args),
            network=self.network,
        )

        try:
            txid = await signer.sign_and_broadcast(call)
        except Exception as exc:
            cause = str(exc) or exc.__class__.__name__
            logger.warning(
                "ledger_submit_failed",
                contract=contract_id,
                function=function_name,
                cause=cause,
            )
            raise TransactionSubmissionError(cause) from exc

        try:
            txid = _normalize_txid(txid or "")
        except ValueError as exc:
            raise TransactionSubmissionError(str(exc)) from exc

        logger.info("ledger_tx_submitted", contract=contract_id, function=function_name, txid=txid)
        return TransactionHandle(txid=txid, contract_id=contract_id, function_name=function_name)

    # ── Reads ──

    async def _request(self, method: str, path: str, *, missing_ok: bool = False, **kwargs: Any) -> dict | None:
        """Send a request and return its JSON object body.

        With ``missing_ok`` a 404 returns None instead of raising.
        """
        try:
            response = await self._client.request(method, path, **kwargs)
            if missing_ok and response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            msg = f"{method} {path} returned {exc.response.status_code}"
            raise LedgerQueryError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc.__class__.__name__}"
            raise LedgerQueryError(msg) from exc
        except ValueError as exc:
            msg = f"{method} {path} returned invalid JSON"
            raise LedgerQueryError(msg) from exc
        except RuntimeError as exc:
            # httpx refuses to send on a closed client
            msg = f"{method} {path} failed: {exc}"
            raise LedgerQueryError(msg) from exc

        if not isinstance(payload, dict):
            msg = f"{method} {path} returned {type(payload).__name__}, expected a JSON object"
            raise LedgerQueryError(msg)
        return payload

    async def query_read_only(
        self,
        contract_id: str,
        function_name: str,
        args: Sequence[ClarityValue],
        as_address: str,
    ) -> Any:
        """Call a read-only function against the latest confirmed state and decode the result."""
        address, name = split_contract_id(contract_id)
        payload = await self._request(
            "POST",
            f"/v2/contracts/call-read/{address}/{name}/{function_name}",
            json={"sender": as_address, "arguments": [to_hex(arg) for arg in args]},
        )

        if not payload.get("okay"):
            cause = payload.get("cause", "unknown cause")
            msg = f"{contract_id}::{function_name} failed: {cause}"
            raise LedgerQueryError(msg)

        result = payload.get("result")
        if not isinstance(result, str):
            msg = f"{contract_id}::{function_name} returned no result"
            raise LedgerQueryError(msg)
        try:
            return deserialize(result)
        except ClarityDecodeError as exc:
            msg = f"{contract_id}::{function_name} returned an undecodable value: {exc}"
            raise LedgerQueryError(msg) from exc

    async def get_block_height(self) -> int:
        """Current chain tip height."""
        info = await self._request("GET", "/v2/info")
        try:
            return int(info["stacks_tip_height"])
        except (KeyError, TypeError, ValueError) as exc:
            msg = "Node info did not include stacks_tip_height"
            raise LedgerQueryError(msg) from exc

    async def get_transaction(self, txid: str) -> TransactionStatus:
        """Look up a transaction's status and decoded result.

        A transaction the API has not indexed yet (404) is reported as pending.
        """
        txid = _normalize_txid(txid)
        data = await self._request("GET", f"/extended/v1/tx/{txid}", missing_ok=True)
        if data is None:
            return TransactionStatus(txid=txid, status="pending")

        status = data.get("tx_status") or "pending"
        if not isinstance(status, str):
            msg = f"Transaction {txid} has a malformed status: {status!r}"
            raise LedgerQueryError(msg)

        result = None
        tx_result = data.get("tx_result")
        raw = tx_result.get("hex") if isinstance(tx_result, dict) else None
        if raw and status != "pending":
            try:
                result = deserialize(raw)
            except ClarityDecodeError as exc:
                msg = f"Transaction {txid} has an undecodable result: {exc}"
                raise LedgerQueryError(msg) from exc
        return TransactionStatus(txid=txid, status=status, result=result)
