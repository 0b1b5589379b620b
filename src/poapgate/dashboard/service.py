"""Platform-wide statistics for the landing page.

Results are cached in Redis for a few seconds when Redis is available.
"""

from __future__ import annotations

import json

import structlog

from poapgate.mirror.store import MirrorStore

logger = structlog.get_logger()

STATS_CACHE_KEY = "dashboard:platform_stats"
STATS_CACHE_TTL = 10  # seconds


async def compute_platform_stats(store: MirrorStore) -> dict[str, int]:
    return {
        "total_posts": await store.posts.count(),
        "total_proposals": await store.proposals.count(),
        "total_users": await store.accounts.count(),
        "active_proposals": await store.proposals.count({"status": "active"}),
    }


async def get_platform_stats(store: MirrorStore) -> dict[str, int]:
    """Totals of posts, proposals, accounts and active proposals."""
    redis = store.redis
    if redis is not None:
        try:
            cached = await redis.get(STATS_CACHE_KEY)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("platform_stats_cache_read_failed", exc_info=True)
            cached = None
        if cached:
            return json.loads(cached)

    stats = await compute_platform_stats(store)

    if redis is not None:
        try:
            await redis.set(STATS_CACHE_KEY, json.dumps(stats), ex=STATS_CACHE_TTL)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("platform_stats_cache_write_failed", exc_info=True)
    return stats
