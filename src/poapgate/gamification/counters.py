"""Per-account activity counters.

Counters only ever go up. They are the single source of truth for
milestone evaluation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from poapgate.db.models import UserStats
from poapgate.errors import MirrorWriteError, UniqueConstraintViolation
from poapgate.mirror.store import MirrorStore

COUNTER_COLUMNS: dict[str, str] = {
    "posts": "posts_created",
    "votes": "votes_cast",
    "likes": "likes_given",
    "poaps": "poaps_owned",
}

CATEGORIES = tuple(COUNTER_COLUMNS)


def counter_column(category: str) -> str:
    try:
        return COUNTER_COLUMNS[category]
    except KeyError:
        msg = f"Unknown milestone category: {category!r}"
        raise ValueError(msg) from None


def counter_value(stats: UserStats | None, category: str) -> int:
    """Current value of ``category``'s counter; 0 for an account with no stats row."""
    column = counter_column(category)
    if stats is None:
        return 0
    return int(getattr(stats, column) or 0)


async def get_or_create_stats(store: MirrorStore, address: str) -> UserStats:
    """Get or create the counters row for an account."""
    stats = await store.accounts.get(user_address=address)
    if stats is not None:
        return stats
    try:
        return await store.accounts.insert(UserStats(user_address=address))
    except UniqueConstraintViolation:
        # Created concurrently by another request
        stats = await store.accounts.get(user_address=address)
        if stats is None:
            msg = f"user_stats row for {address} vanished"
            raise MirrorWriteError(msg) from None
        return stats


async def increment_counter(store: MirrorStore, address: str, category: str) -> None:
    """Add exactly one to the account's counter for ``category``."""
    column = counter_column(category)
    await get_or_create_stats(store, address)
    affected = await store.accounts.increment(
        {"user_address": address},
        column,
        updated_at=datetime.now(timezone.utc),
    )
    if affected != 1:
        msg = f"Counter {column} for {address} not updated"
        raise MirrorWriteError(msg)


async def raise_counter_to(store: MirrorStore, address: str, category: str, value: int) -> int:
    """Set the counter to ``value`` if that is higher. Returns the resulting value."""
    column = counter_column(category)
    stats = await get_or_create_stats(store, address)
    await store.accounts.update(
        {"user_address": address, f"{column}__lt": value},
        {column: value, "updated_at": datetime.now(timezone.utc)},
    )
    current = await store.accounts.get(user_address=address)
    return counter_value(current or stats, category)
