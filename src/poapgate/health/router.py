"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends

from poapgate.config import get_settings
from poapgate.dependencies import get_store
from poapgate.ledger.gateway import LedgerGateway
from poapgate.ledger_client import get_gateway
from poapgate.mirror.store import MirrorStore

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    store: MirrorStore = Depends(get_store),  # noqa: B008
    gateway: LedgerGateway = Depends(get_gateway),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks the mirror store, Redis and the Stacks node."""
    checks: dict[str, object] = {}

    try:
        checks["database"] = "ok" if await store.ping() else "error: unexpected result"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if store.redis is None:
        checks["redis"] = "error: not initialized"
    else:
        try:
            await store.redis.ping()  # type: ignore[attr-defined]
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    try:
        height = await gateway.get_block_height()
        checks["ledger"] = "ok"
        checks["block_height"] = height
    except Exception as exc:
        checks["ledger"] = f"error: {exc}"

    all_ok = all(v == "ok" for k, v in checks.items() if k != "block_height")
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version, environment and ledger network."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "network": settings.stacks_network,
    }
