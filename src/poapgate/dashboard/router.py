"""Dashboard endpoints."""

from fastapi import APIRouter, Depends

from poapgate.dashboard.schemas import PlatformStatsResponse
from poapgate.dashboard.service import get_platform_stats
from poapgate.dependencies import get_store
from poapgate.mirror.store import MirrorStore

router = APIRouter(prefix="/api/v1", tags=["Dashboard"])


@router.get("/stats", response_model=PlatformStatsResponse)
async def platform_stats(store: MirrorStore = Depends(get_store)) -> PlatformStatsResponse:  # noqa: B008
    """Platform totals (10s cached in Redis)."""
    return PlatformStatsResponse(**await get_platform_stats(store))
