"""Milestone and account endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from poapgate.dependencies import get_milestone_engine, get_oracle, get_pipeline, get_store
from poapgate.gamification.milestone_engine import MilestoneEngine
from poapgate.gamification.schemas import (
    AccountSummaryResponse,
    AllMilestonesResponse,
    CredentialStatusResponse,
    MilestoneDefinitionResponse,
    SyncCredentialsResponse,
)
from poapgate.gating.oracle import EligibilityOracle
from poapgate.intents.pipeline import IntentPipeline
from poapgate.ledger._c32 import is_valid_address
from poapgate.mirror.store import MirrorStore

router = APIRouter(prefix="/api/v1", tags=["Milestones"])


def _require_address(address: str) -> str:
    if not is_valid_address(address):
        raise HTTPException(status_code=422, detail=f"Invalid Stacks address: {address}")
    return address


@router.get("/milestones", response_model=AllMilestonesResponse)
async def list_milestones(store: MirrorStore = Depends(get_store)) -> AllMilestonesResponse:  # noqa: B008
    """All milestone definitions in display order."""
    milestones = await store.milestones.list(order=["sort_order", "id"])
    return AllMilestonesResponse(
        milestones=[MilestoneDefinitionResponse.model_validate(m) for m in milestones],
    )


@router.get("/accounts/{address}", response_model=AccountSummaryResponse)
async def account_summary(
    address: str,
    engine: MilestoneEngine = Depends(get_milestone_engine),  # noqa: B008
) -> AccountSummaryResponse:
    """Counters, points and per-milestone progress. Unknown accounts read as all zeros."""
    summary = await engine.account_summary(_require_address(address))
    return AccountSummaryResponse.model_validate(summary)


@router.get("/accounts/{address}/credential", response_model=CredentialStatusResponse)
async def credential_status(
    address: str,
    oracle: EligibilityOracle = Depends(get_oracle),  # noqa: B008
) -> CredentialStatusResponse:
    _require_address(address)
    return CredentialStatusResponse(
        user_address=address,
        has_credential=await oracle.has_credential(address),
        poap_count=await oracle.credential_count(address),
    )


@router.post("/accounts/{address}/credential/sync", response_model=SyncCredentialsResponse)
async def sync_credentials(
    address: str,
    pipeline: IntentPipeline = Depends(get_pipeline),  # noqa: B008
) -> SyncCredentialsResponse:
    """Pull the POAP balance from the ledger into the account's counters.

    Awards any POAP milestones the new balance reaches. 503 when the ledger
    cannot be read.
    """
    result = await pipeline.sync_credentials(_require_address(address))
    return SyncCredentialsResponse(
        user_address=address,
        poaps_owned=result.record,
        milestones_awarded=[MilestoneDefinitionResponse.model_validate(m) for m in result.milestones_awarded],
    )
