"""Intent submission pipeline.

Each state-changing user action runs as an ordered saga across the ledger
and the mirror store. There is no shared transaction between the two, so
each step's failure is handled explicitly:

* the credential gate runs first and fails closed; nothing is written
  when it rejects;
* ledger submission failures surface as ``TransactionSubmissionError`` and
  are never retried here;
* a mirror failure after a successful ledger step is logged with the
  transaction id for offline reconciliation and surfaced as
  ``MirrorWriteError``; the ledger effect stands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from poapgate.db.models import Like, Milestone, Post, Proposal, Vote
from poapgate.errors import (
    DuplicateActionError,
    LedgerQueryError,
    MirrorWriteError,
    NotEligibleError,
    ProposalClosedError,
    ProposalNotConfirmedError,
    ProposalRejectedError,
    RecordNotFoundError,
    UniqueConstraintViolation,
)
from poapgate.gamification.counters import increment_counter, raise_counter_to
from poapgate.gamification.milestone_engine import MilestoneEngine
from poapgate.gating.oracle import EligibilityOracle
from poapgate.governance.tally import apply_vote
from poapgate.ledger.clarity import ClarityResponse
from poapgate.ledger.contracts import PoapContract, VotingContract
from poapgate.ledger.gateway import Signer, TransactionHandle
from poapgate.mirror.store import MirrorStore

logger = structlog.get_logger()

MIN_OPTIONS = 2
MAX_OPTIONS = 10


@dataclass
class IntentResult:
    """Terminal success of one action."""

    record: Any = None
    transaction: TransactionHandle | None = None
    milestones_awarded: list[Milestone] = field(default_factory=list)


def _clean_options(options: list[str]) -> list[str]:
    cleaned = [opt.strip() for opt in options if opt and opt.strip()]
    if not MIN_OPTIONS <= len(cleaned) <= MAX_OPTIONS:
        msg = f"A proposal needs {MIN_OPTIONS}-{MAX_OPTIONS} options, got {len(cleaned)}"
        raise ValueError(msg)
    return cleaned


class IntentPipeline:
    """Orchestrates gated actions. Store, ledger and signer are all injected."""

    def __init__(
        self,
        store: MirrorStore,
        oracle: EligibilityOracle,
        poap: PoapContract,
        voting: VotingContract,
        milestones: MilestoneEngine | None = None,
        tally_max_attempts: int = 8,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.poap = poap
        self.voting = voting
        self.milestones = milestones or MilestoneEngine(store)
        self.tally_max_attempts = tally_max_attempts

    # ── Shared steps ──

    async def _require_credential(self, address: str, action: str) -> None:
        if not await self.oracle.has_credential(address):
            logger.info("intent_not_eligible", action=action, address=address)
            raise NotEligibleError

    async def _record_activity(self, address: str, category: str, action: str, **context: Any) -> list[Milestone]:
        """Bump the account's counter for ``category`` and evaluate its milestones."""
        try:
            await increment_counter(self.store, address, category)
        except MirrorWriteError:
            logger.error(
                "intent_counter_stale",
                action=action,
                address=address,
                category=category,
                **context,
                exc_info=True,
            )
            raise

        try:
            return await self.milestones.evaluate(address, category)
        except MirrorWriteError:
            logger.error(
                "intent_milestone_evaluation_failed",
                action=action,
                address=address,
                category=category,
                **context,
                exc_info=True,
            )
            raise

    # ── Actions ──

    async def mint_credential(
        self,
        recipient: str,
        event_name: str,
        event_date: datetime | int,
        image_uri: str,
        signer: Signer,
    ) -> IntentResult:
        """Submit a POAP mint. Success means accepted by the network, not confirmed."""
        handle = await self.poap.mint_poap(recipient, event_name, event_date, image_uri, signer)
        logger.info("intent_mint_submitted", recipient=recipient, event_name=event_name, txid=handle.txid)
        return IntentResult(transaction=handle)

    async def create_post(self, author: str, title: str, content: str) -> IntentResult:
        if not title.strip() or not content.strip():
            msg = "Post title and content are required"
            raise ValueError(msg)

        await self._require_credential(author, "create_post")

        try:
            post = await self.store.posts.insert(
                Post(user_address=author, title=title.strip(), content=content.strip())
            )
        except UniqueConstraintViolation as exc:
            raise MirrorWriteError(str(exc)) from exc

        awarded = await self._record_activity(author, "posts", "create_post", post_id=post.id)
        logger.info("intent_post_created", address=author, post_id=post.id)
        return IntentResult(record=post, milestones_awarded=awarded)

    async def like_post(self, liker: str, post_id: int) -> IntentResult:
        if not liker:
            msg = "Connect your wallet to like posts"
            raise NotEligibleError(msg)

        if await self.store.posts.get(id=post_id) is None:
            msg = f"Post {post_id} not found"
            raise RecordNotFoundError(msg)

        try:
            like = await self.store.likes.insert(Like(post_id=post_id, user_address=liker))
        except UniqueConstraintViolation as exc:
            msg = "You already liked this post"
            raise DuplicateActionError(msg) from exc

        try:
            await self.store.posts.increment({"id": post_id}, "likes_count")
        except MirrorWriteError:
            logger.error("intent_like_count_stale", address=liker, post_id=post_id, exc_info=True)
            raise

        awarded = await self._record_activity(liker, "likes", "like_post", post_id=post_id)
        return IntentResult(record=like, milestones_awarded=awarded)

    async def create_proposal(
        self,
        creator: str,
        title: str,
        description: str,
        duration_blocks: int,
        options: list[str],
        signer: Signer,
    ) -> IntentResult:
        if not title.strip():
            msg = "Proposal title is required"
            raise ValueError(msg)
        if duration_blocks <= 0:
            msg = "Proposal duration must be a positive number of blocks"
            raise ValueError(msg)
        options = _clean_options(options)

        await self._require_credential(creator, "create_proposal")

        height = await self.voting.gateway.get_block_height()
        handle = await self.voting.create_proposal(title, description, duration_blocks, options, signer)

        try:
            proposal = await self.store.proposals.insert(
                Proposal(
                    title=title.strip(),
                    description=description,
                    created_by=creator,
                    start_block=height,
                    end_block=height + duration_blocks,
                    options=options,
                    votes={},
                    total_votes=0,
                    status="active",
                    ledger_tx_id=handle.txid,
                )
            )
        except (MirrorWriteError, UniqueConstraintViolation) as exc:
            logger.error(
                "intent_proposal_mirror_failed",
                address=creator,
                txid=handle.txid,
                error=str(exc),
            )
            raise MirrorWriteError(str(exc)) from exc

        logger.info("intent_proposal_created", address=creator, proposal_id=proposal.id, txid=handle.txid)
        return IntentResult(record=proposal, transaction=handle)

    async def cast_vote(self, voter: str, proposal_id: int, option_index: int, signer: Signer) -> IntentResult:
        proposal = await self.store.proposals.get(id=proposal_id)
        if proposal is None:
            msg = f"Proposal {proposal_id} not found"
            raise RecordNotFoundError(msg)
        if not 0 <= option_index < len(proposal.options):
            msg = f"Option {option_index} out of range"
            raise ValueError(msg)

        proposal = await self.refresh_proposal_status(proposal)
        if proposal.status != "active":
            raise ProposalClosedError

        await self._require_credential(voter, "cast_vote")

        if await self.store.votes.get(proposal_id=proposal_id, user_address=voter) is not None:
            msg = "You have already voted on this proposal"
            raise DuplicateActionError(msg)

        ledger_id = proposal.ledger_proposal_id
        if ledger_id is None:
            ledger_id = await self.link_ledger_proposal(proposal)
        if ledger_id is None:
            raise ProposalNotConfirmedError

        handle = await self.voting.cast_vote(ledger_id, option_index, signer)

        # The vote row goes in before the tally so a racing duplicate is
        # rejected here and never reaches the counts.
        try:
            vote = await self.store.votes.insert(
                Vote(
                    proposal_id=proposal_id,
                    user_address=voter,
                    option_index=option_index,
                    ledger_tx_id=handle.txid,
                )
            )
        except UniqueConstraintViolation as exc:
            logger.warning(
                "intent_vote_duplicate_after_submit",
                address=voter,
                proposal_id=proposal_id,
                txid=handle.txid,
            )
            msg = "You have already voted on this proposal"
            raise DuplicateActionError(msg) from exc
        except MirrorWriteError:
            logger.error("intent_vote_mirror_failed", address=voter, proposal_id=proposal_id, txid=handle.txid)
            raise

        try:
            await apply_vote(self.store, proposal_id, option_index, self.tally_max_attempts)
        except MirrorWriteError:
            logger.error(
                "intent_tally_stale",
                address=voter,
                proposal_id=proposal_id,
                vote_id=vote.id,
                txid=handle.txid,
                exc_info=True,
            )
            raise

        awarded = await self._record_activity(voter, "votes", "cast_vote", proposal_id=proposal_id)
        logger.info("intent_vote_cast", address=voter, proposal_id=proposal_id, txid=handle.txid)
        return IntentResult(record=vote, transaction=handle, milestones_awarded=awarded)

    # ── Ledger observation ──

    async def sync_credentials(self, address: str) -> IntentResult:
        """Raise ``poaps_owned`` to the ledger balance and evaluate POAP milestones."""
        balance = await self.poap.get_balance(address)
        value = await raise_counter_to(self.store, address, "poaps", balance)
        awarded = await self.milestones.evaluate(address, "poaps")
        return IntentResult(record=value, milestones_awarded=awarded)

    async def refresh_proposal_status(self, proposal: Proposal) -> Proposal:
        """Mark an active proposal ended once the chain has reached its end block."""
        if proposal.status != "active":
            return proposal
        height = await self.voting.gateway.get_block_height()
        if height >= proposal.end_block:
            await self.store.proposals.update({"id": proposal.id, "status": "active"}, {"status": "ended"})
            proposal.status = "ended"
            logger.info("proposal_ended", proposal_id=proposal.id, height=height)
        return proposal

    async def link_ledger_proposal(self, proposal: Proposal) -> int | None:
        """Record the ledger-assigned id once the creation transaction confirms.

        Returns None while the transaction is pending. Raises
        ``ProposalRejectedError`` when it was aborted or dropped.
        """
        if proposal.ledger_proposal_id is not None:
            return proposal.ledger_proposal_id
        if not proposal.ledger_tx_id:
            return None

        status = await self.voting.gateway.get_transaction(proposal.ledger_tx_id)
        if status.pending:
            return None
        result = status.result
        if not status.confirmed or not isinstance(result, ClarityResponse) or not result.ok:
            logger.warning(
                "proposal_tx_not_applied",
                proposal_id=proposal.id,
                txid=proposal.ledger_tx_id,
                status=status.status,
            )
            msg = f"Creation transaction {proposal.ledger_tx_id} ended as {status.status}"
            raise ProposalRejectedError(msg)
        if not isinstance(result.value, int) or isinstance(result.value, bool):
            msg = f"create-proposal returned {result.value!r}, expected a uint id"
            raise LedgerQueryError(msg)

        try:
            await self.store.proposals.update({"id": proposal.id}, {"ledger_proposal_id": result.value})
        except MirrorWriteError:
            logger.error(
                "proposal_link_failed",
                proposal_id=proposal.id,
                ledger_proposal_id=result.value,
                exc_info=True,
            )
            raise
        proposal.ledger_proposal_id = result.value
        logger.info("proposal_linked", proposal_id=proposal.id, ledger_proposal_id=result.value)
        return result.value
