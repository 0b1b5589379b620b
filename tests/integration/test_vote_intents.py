"""Vote intents and the mirror tally."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from fakes import ALICE, BOB, CAROL, FakeLedger, FakeSigner
from poapgate.db.models import Proposal
from poapgate.errors import (
    DuplicateActionError,
    MirrorWriteError,
    NotEligibleError,
    ProposalClosedError,
    ProposalNotConfirmedError,
    ProposalRejectedError,
    RecordNotFoundError,
    TransactionSubmissionError,
)
from poapgate.governance.tally import apply_vote, percentage, summarize
from poapgate.intents.pipeline import IntentPipeline
from poapgate.ledger._c32 import TESTNET_SINGLE_SIG, c32_address
from poapgate.ledger.clarity import err_cv, ok_cv, to_hex, uint_cv
from poapgate.mirror.store import MirrorStore


async def _confirmed_proposal(
    ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner, ledger_id: int = 1
) -> Proposal:
    ledger.grant(ALICE)
    result = await pipeline.create_proposal(ALICE, "Fund the meetup", "", 144, ["Yes", "No"], signer)
    ledger.confirm(result.transaction.txid, ok_cv(uint_cv(ledger_id)))
    return result.record


class TestCastVote:
    @pytest.mark.asyncio
    async def test_first_vote_updates_tally(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer, ledger_id=3)
        ledger.grant(BOB)

        result = await pipeline.cast_vote(BOB, proposal.id, 0, signer)

        stored = await pipeline.store.proposals.get(id=proposal.id)
        assert stored.total_votes == 1
        assert summarize(stored)[0]["votes"] == 1
        assert summarize(stored)[1]["votes"] == 0
        assert percentage(stored.votes, stored.total_votes, 0) == 100.0
        assert stored.ledger_proposal_id == 3

        assert result.record.option_index == 0
        assert result.record.ledger_tx_id == result.transaction.txid
        assert signer.calls[-1].function_args == (to_hex(uint_cv(3)), to_hex(uint_cv(1)))
        assert [m.slug for m in result.milestones_awarded] == ["first_vote"]
        assert (await pipeline.store.accounts.get(user_address=BOB)).votes_cast == 1

    @pytest.mark.asyncio
    async def test_simultaneous_double_vote_counts_once(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        await pipeline.link_ledger_proposal(proposal)
        ledger.grant(BOB)

        results = await asyncio.gather(
            pipeline.cast_vote(BOB, proposal.id, 0, signer),
            pipeline.cast_vote(BOB, proposal.id, 1, signer),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateActionError)

        stored = await pipeline.store.proposals.get(id=proposal.id)
        assert stored.total_votes == 1
        assert sum(int(v) for v in stored.votes.values()) == 1
        assert await pipeline.store.votes.count({"proposal_id": proposal.id}) == 1
        assert (await pipeline.store.accounts.get(user_address=BOB)).votes_cast == 1

    @pytest.mark.asyncio
    async def test_repeat_vote_rejected_before_ledger(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        ledger.grant(BOB)
        await pipeline.cast_vote(BOB, proposal.id, 0, signer)
        submitted = len(signer.calls)

        with pytest.raises(DuplicateActionError):
            await pipeline.cast_vote(BOB, proposal.id, 1, signer)
        assert len(signer.calls) == submitted

    @pytest.mark.asyncio
    async def test_non_holder_rejected(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        submitted = len(signer.calls)

        with pytest.raises(NotEligibleError):
            await pipeline.cast_vote(CAROL, proposal.id, 0, signer)
        assert len(signer.calls) == submitted
        assert await pipeline.store.votes.count() == 0

    @pytest.mark.asyncio
    async def test_ended_proposal_rejected(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        ledger.grant(BOB)
        ledger.block_height = proposal.end_block + 1

        with pytest.raises(ProposalClosedError):
            await pipeline.cast_vote(BOB, proposal.id, 0, signer)
        assert (await pipeline.store.proposals.get(id=proposal.id)).status == "ended"

    @pytest.mark.asyncio
    async def test_unconfirmed_proposal_rejected(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        ledger.grant(ALICE)
        result = await pipeline.create_proposal(ALICE, "Fund the meetup", "", 144, ["Yes", "No"], signer)
        ledger.leave_pending(result.transaction.txid)
        ledger.grant(BOB)

        with pytest.raises(ProposalNotConfirmedError):
            await pipeline.cast_vote(BOB, result.record.id, 0, signer)
        assert len(signer.calls) == 1

    @pytest.mark.asyncio
    async def test_unindexed_creation_is_not_confirmed(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        ledger.grant(ALICE)
        result = await pipeline.create_proposal(ALICE, "Fund the meetup", "", 144, ["Yes", "No"], signer)
        ledger.grant(BOB)

        with pytest.raises(ProposalNotConfirmedError) as exc_info:
            await pipeline.cast_vote(BOB, result.record.id, 0, signer)
        assert exc_info.value.retryable is True
        assert len(signer.calls) == 1

    @pytest.mark.asyncio
    async def test_aborted_creation_rejects_votes_for_good(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        ledger.grant(ALICE)
        result = await pipeline.create_proposal(ALICE, "Fund the meetup", "", 144, ["Yes", "No"], signer)
        ledger.confirm(result.transaction.txid, err_cv(uint_cv(100)), status="abort_by_response")
        ledger.grant(BOB)

        with pytest.raises(ProposalRejectedError) as exc_info:
            await pipeline.cast_vote(BOB, result.record.id, 0, signer)
        assert exc_info.value.retryable is False
        assert len(signer.calls) == 1
        assert await pipeline.store.votes.count() == 0

    @pytest.mark.asyncio
    async def test_tally_failure_after_submit_surfaces(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner, monkeypatch
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        ledger.grant(BOB)
        monkeypatch.setattr(
            "poapgate.intents.pipeline.apply_vote",
            AsyncMock(side_effect=MirrorWriteError("proposals unavailable")),
        )

        with pytest.raises(MirrorWriteError):
            await pipeline.cast_vote(BOB, proposal.id, 0, signer)

        assert signer.calls[-1].function_name == "cast-vote"
        stored = await pipeline.store.proposals.get(id=proposal.id)
        assert stored.total_votes == 0
        assert stored.votes == {}
        assert await pipeline.store.votes.count({"proposal_id": proposal.id}) == 1
        assert await pipeline.store.accounts.get(user_address=BOB) is None

    @pytest.mark.asyncio
    async def test_option_out_of_range(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        ledger.grant(BOB)
        with pytest.raises(ValueError):
            await pipeline.cast_vote(BOB, proposal.id, 2, signer)

    @pytest.mark.asyncio
    async def test_unknown_proposal(self, pipeline: IntentPipeline, signer: FakeSigner) -> None:
        with pytest.raises(RecordNotFoundError):
            await pipeline.cast_vote(BOB, 12345, 0, signer)

    @pytest.mark.asyncio
    async def test_wallet_rejection_leaves_tally(self, ledger: FakeLedger, pipeline: IntentPipeline) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, FakeSigner())
        ledger.grant(BOB)

        with pytest.raises(TransactionSubmissionError):
            await pipeline.cast_vote(BOB, proposal.id, 0, FakeSigner(error=RuntimeError("Insufficient fee")))

        stored = await pipeline.store.proposals.get(id=proposal.id)
        assert stored.total_votes == 0
        assert await pipeline.store.votes.count() == 0
        assert await pipeline.store.accounts.get(user_address=BOB) is None


class TestApplyVote:
    @pytest.mark.asyncio
    async def test_concurrent_voters_all_counted(self, store: MirrorStore) -> None:
        proposal = await store.proposals.insert(
            Proposal(
                title="Pick a venue",
                description="",
                created_by=ALICE,
                start_block=0,
                end_block=100,
                options=["A", "B", "C"],
                votes={},
                total_votes=0,
                status="active",
            )
        )

        await asyncio.gather(*(apply_vote(store, proposal.id, i % 3) for i in range(6)))

        stored = await store.proposals.get(id=proposal.id)
        assert stored.total_votes == 6
        assert stored.votes == {"0": 2, "1": 2, "2": 2}

    @pytest.mark.asyncio
    async def test_out_of_range_option(self, store: MirrorStore) -> None:
        proposal = await store.proposals.insert(
            Proposal(
                title="t", description="", created_by=ALICE, start_block=0, end_block=1,
                options=["A", "B"], votes={}, total_votes=0, status="active",
            )
        )
        with pytest.raises(ValueError):
            await apply_vote(store, proposal.id, 5)

    @pytest.mark.asyncio
    async def test_missing_proposal(self, store: MirrorStore) -> None:
        with pytest.raises(RecordNotFoundError):
            await apply_vote(store, 77, 0)


class TestManyVoters:
    @pytest.mark.asyncio
    async def test_distinct_voters_sum_to_total(
        self, ledger: FakeLedger, pipeline: IntentPipeline, signer: FakeSigner
    ) -> None:
        proposal = await _confirmed_proposal(ledger, pipeline, signer)
        await pipeline.link_ledger_proposal(proposal)
        voters = [c32_address(TESTNET_SINGLE_SIG, bytes([40 + i]) * 20) for i in range(4)]
        for voter in voters:
            ledger.grant(voter)

        await asyncio.gather(*(pipeline.cast_vote(v, proposal.id, i % 2, signer) for i, v in enumerate(voters)))

        stored = await pipeline.store.proposals.get(id=proposal.id)
        assert stored.total_votes == 4
        assert [o["votes"] for o in summarize(stored)] == [2, 2]
