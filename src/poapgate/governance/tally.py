"""Proposal tally: per-option vote counts and their total.

Invariant: ``total_votes == sum(votes.values())``. Mirror rows store the
mapping as JSON, so option indices are string keys at rest and ints here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from poapgate.db.models import Proposal
from poapgate.errors import MirrorWriteError, RecordNotFoundError
from poapgate.ledger.contracts import VotingContract
from poapgate.mirror.store import MirrorStore

logger = logging.getLogger(__name__)


def record_vote(votes: dict[Any, int] | None, total_votes: int, option_index: int) -> tuple[dict[str, int], int]:
    """Return the tally with one more vote for ``option_index``."""
    if option_index < 0:
        msg = f"Invalid option index: {option_index}"
        raise ValueError(msg)
    updated = {str(k): int(v) for k, v in (votes or {}).items()}
    key = str(option_index)
    updated[key] = updated.get(key, 0) + 1
    return updated, total_votes + 1


def tally_counts(votes: dict[Any, int] | None, option_count: int) -> dict[int, int]:
    """Per-option counts with every index present (missing ones are 0)."""
    stored = {int(k): int(v) for k, v in (votes or {}).items()}
    return {i: stored.get(i, 0) for i in range(option_count)}


def percentage(votes: dict[Any, int] | None, total_votes: int, option_index: int) -> float:
    if total_votes <= 0:
        return 0.0
    count = tally_counts(votes, option_index + 1)[option_index]
    return count / total_votes * 100


def summarize(proposal: Proposal) -> list[dict]:
    """Option labels with their counts and percentages."""
    counts = tally_counts(proposal.votes, len(proposal.options))
    return [
        {
            "index": i,
            "label": label,
            "votes": counts[i],
            "percentage": percentage(proposal.votes, proposal.total_votes, i),
        }
        for i, label in enumerate(proposal.options)
    ]


async def apply_vote(
    store: MirrorStore,
    proposal_id: int,
    option_index: int,
    max_attempts: int = 8,
) -> Proposal:
    """Add one vote to the mirror tally.

    Compare-and-set on ``total_votes``: the update only lands if no other
    vote was applied since the read, otherwise re-read and retry.
    """
    for attempt in range(1, max_attempts + 1):
        proposal = await store.proposals.get(id=proposal_id)
        if proposal is None:
            msg = f"Proposal {proposal_id} not found"
            raise RecordNotFoundError(msg)
        if option_index >= len(proposal.options):
            msg = f"Option {option_index} out of range for proposal {proposal_id}"
            raise ValueError(msg)

        votes, total = record_vote(proposal.votes, proposal.total_votes, option_index)
        affected = await store.proposals.update(
            {"id": proposal_id, "total_votes": proposal.total_votes},
            {"votes": votes, "total_votes": total},
        )
        if affected == 1:
            proposal.votes = votes
            proposal.total_votes = total
            return proposal

        logger.debug("Tally contention on proposal %s (attempt %d)", proposal_id, attempt)
        await asyncio.sleep(0)

    msg = f"Tally update for proposal {proposal_id} lost {max_attempts} races"
    raise MirrorWriteError(msg)


async def winning_option(voting: VotingContract, ledger_proposal_id: int) -> int:
    """0-based winning option as decided by the contract's own tie-break rule."""
    return await voting.get_winning_option(ledger_proposal_id)
