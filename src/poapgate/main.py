"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from poapgate.config import get_settings
from poapgate.dashboard.router import router as dashboard_router
from poapgate.database import close_db, create_schema, get_session_factory, init_db
from poapgate.gamification.router import router as gamification_router
from poapgate.gamification.seed import seed_milestones
from poapgate.governance.router import router as governance_router
from poapgate.health.router import router as health_router
from poapgate.ledger_client import close_ledger, init_ledger
from poapgate.middleware import setup_middleware
from poapgate.mirror.store import MirrorStore
from poapgate.redis_client import close_redis, init_redis
from poapgate.social.router import router as social_router
from poapgate.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    await init_redis(settings.redis_url)
    await init_ledger(settings)

    # Milestone definitions (idempotent)
    try:
        await seed_milestones(MirrorStore(get_session_factory()))
    except Exception:
        logger.warning("milestone_seeding_failed", exc_info=True)

    yield

    await close_ledger()
    await close_redis()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="POAP Gate API",
        description="Token-gated community backend: posts, proposals and milestones for POAP holders",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(social_router)
    app.include_router(governance_router)
    app.include_router(gamification_router)
    app.include_router(dashboard_router)
    app.include_router(ws_router)

    return app


app = create_app()
