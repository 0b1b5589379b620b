"""Proposal endpoints: mirror tallies and the ledger's verdict."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from poapgate.db.models import Proposal
from poapgate.dependencies import get_store
from poapgate.errors import LedgerQueryError, ProposalNotConfirmedError, RecordNotFoundError
from poapgate.governance.schemas import OptionTally, ProposalListResponse, ProposalResponse, WinnerResponse
from poapgate.governance.tally import summarize, winning_option
from poapgate.ledger.contracts import VotingContract
from poapgate.ledger_client import get_voting_contract
from poapgate.mirror.store import MirrorStore

router = APIRouter(prefix="/api/v1/proposals", tags=["Governance"])


def _to_response(proposal: Proposal) -> ProposalResponse:
    return ProposalResponse(
        id=proposal.id,
        ledger_proposal_id=proposal.ledger_proposal_id,
        title=proposal.title,
        description=proposal.description,
        created_by=proposal.created_by,
        start_block=proposal.start_block,
        end_block=proposal.end_block,
        status=proposal.status,
        total_votes=proposal.total_votes,
        options=[OptionTally(**item) for item in summarize(proposal)],
        created_at=proposal.created_at,
    )


async def _get_or_404(store: MirrorStore, proposal_id: int) -> Proposal:
    proposal = await store.proposals.get(id=proposal_id)
    if proposal is None:
        msg = f"Proposal {proposal_id} not found"
        raise RecordNotFoundError(msg)
    return proposal


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    status: Literal["active", "ended"] | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: MirrorStore = Depends(get_store),  # noqa: B008
) -> ProposalListResponse:
    filters = {"status": status} if status else None
    proposals = await store.proposals.list(filter=filters, order=["-id"], limit=limit, offset=offset)
    return ProposalListResponse(
        proposals=[_to_response(p) for p in proposals],
        total=await store.proposals.count(filters),
    )


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: int,
    store: MirrorStore = Depends(get_store),  # noqa: B008
) -> ProposalResponse:
    """Proposal with every option's count and share of the vote."""
    return _to_response(await _get_or_404(store, proposal_id))


@router.get("/{proposal_id}/winner", response_model=WinnerResponse)
async def get_winner(
    proposal_id: int,
    store: MirrorStore = Depends(get_store),  # noqa: B008
    voting: VotingContract = Depends(get_voting_contract),  # noqa: B008
) -> WinnerResponse:
    """Winning option as decided on the ledger, not from the mirror tally."""
    proposal = await _get_or_404(store, proposal_id)
    if proposal.ledger_proposal_id is None:
        raise ProposalNotConfirmedError

    index = await winning_option(voting, proposal.ledger_proposal_id)
    if index >= len(proposal.options):
        msg = f"Ledger winner {index} is outside proposal {proposal_id}'s options"
        raise LedgerQueryError(msg)
    return WinnerResponse(
        proposal_id=proposal.id,
        ledger_proposal_id=proposal.ledger_proposal_id,
        option_index=index,
        label=proposal.options[index],
    )
