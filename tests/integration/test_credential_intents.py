"""POAP minting and credential sync."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fakes import ALICE, FakeLedger, FakeSigner
from poapgate.errors import LedgerQueryError, TransactionSubmissionError
from poapgate.intents.pipeline import IntentPipeline
from poapgate.ledger.clarity import deserialize


class TestMintCredential:
    @pytest.mark.asyncio
    async def test_submits_mint(self, pipeline: IntentPipeline, signer: FakeSigner) -> None:
        when = datetime(2026, 6, 1, 18, 30, tzinfo=timezone.utc)

        result = await pipeline.mint_credential(ALICE, "Stacks Meetup", when, "ipfs://badge.png", signer)

        assert result.transaction.function_name == "mint-poap"
        assert result.record is None
        args = [deserialize(a) for a in signer.calls[0].function_args]
        assert args == [ALICE, "Stacks Meetup", int(when.timestamp()) * 1000, "ipfs://badge.png"]
        assert await pipeline.store.accounts.count() == 0

    @pytest.mark.asyncio
    async def test_rejected_mint(self, pipeline: IntentPipeline) -> None:
        with pytest.raises(TransactionSubmissionError):
            await pipeline.mint_credential(
                ALICE, "Stacks Meetup", 0, "ipfs://badge.png", FakeSigner(error=RuntimeError("rejected"))
            )


class TestSyncCredentials:
    @pytest.mark.asyncio
    async def test_balance_drives_poap_milestones(self, ledger: FakeLedger, pipeline: IntentPipeline) -> None:
        ledger.grant(ALICE, 10)

        result = await pipeline.sync_credentials(ALICE)

        assert result.record == 10
        assert [m.slug for m in result.milestones_awarded] == ["first_poap", "poaps_10"]
        assert (await pipeline.sync_credentials(ALICE)).milestones_awarded == []

    @pytest.mark.asyncio
    async def test_counter_never_decreases(self, ledger: FakeLedger, pipeline: IntentPipeline) -> None:
        ledger.grant(ALICE, 3)
        await pipeline.sync_credentials(ALICE)

        ledger.balances[ALICE] = 1
        result = await pipeline.sync_credentials(ALICE)

        assert result.record == 3
        assert (await pipeline.store.accounts.get(user_address=ALICE)).poaps_owned == 3

    @pytest.mark.asyncio
    async def test_ledger_outage_propagates(self, ledger: FakeLedger, pipeline: IntentPipeline) -> None:
        ledger.unreachable = True
        with pytest.raises(LedgerQueryError):
            await pipeline.sync_credentials(ALICE)
        assert await pipeline.store.accounts.count() == 0
