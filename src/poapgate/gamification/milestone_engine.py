"""Milestone engine: evaluates activity counters against milestone targets."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from poapgate.db.models import Milestone, UserMilestone
from poapgate.errors import UniqueConstraintViolation
from poapgate.gamification.counters import CATEGORIES, counter_column, counter_value
from poapgate.mirror.store import MirrorStore

logger = logging.getLogger(__name__)


def progress(current: int, target: int) -> float:
    """Percent complete, clamped to 100. ``target`` must be positive."""
    if target <= 0:
        msg = f"Milestone target must be positive, got {target}"
        raise ValueError(msg)
    return min(current / target, 1.0) * 100


class MilestoneEngine:
    """Awards one-time milestone completions."""

    def __init__(self, store: MirrorStore) -> None:
        self.store = store

    async def milestones_for(self, category: str) -> list[Milestone]:
        counter_column(category)
        return await self.store.milestones.list(filter={"category": category}, order=["target", "id"])

    async def has_completed(self, address: str, milestone_id: int) -> bool:
        record = await self.store.user_milestones.get(user_address=address, milestone_id=milestone_id)
        return record is not None

    async def _award(self, address: str, milestone: Milestone) -> bool:
        """Insert the completion record. Returns False if it already existed."""
        if await self.has_completed(address, milestone.id):
            return False
        try:
            await self.store.user_milestones.insert(
                UserMilestone(
                    user_address=address,
                    milestone_id=milestone.id,
                    completed_at=datetime.now(timezone.utc),
                )
            )
        except UniqueConstraintViolation:
            return False  # Race condition: completed by a concurrent evaluation
        logger.info("Milestone completed: %s by %s", milestone.slug, address)
        return True

    async def evaluate(self, address: str, category: str) -> list[Milestone]:
        """Award every milestone of ``category`` the account has reached.

        Returns the milestones newly completed by this call (may be empty).
        Re-running is a no-op for milestones already completed.
        """
        stats = await self.store.accounts.get(user_address=address)
        current = counter_value(stats, category)

        awarded: list[Milestone] = []
        for milestone in await self.milestones_for(category):
            if milestone.target <= current and await self._award(address, milestone):
                awarded.append(milestone)
        return awarded

    async def progress_for(self, address: str, milestone: Milestone) -> float:
        stats = await self.store.accounts.get(user_address=address)
        return progress(counter_value(stats, milestone.category), milestone.target)

    async def completed_ids(self, address: str) -> set[int]:
        records = await self.store.user_milestones.list(filter={"user_address": address})
        return {r.milestone_id for r in records}

    async def total_points(self, address: str) -> int:
        """Sum of reward points over the account's completed milestones."""
        completed = await self.completed_ids(address)
        if not completed:
            return 0
        milestones = await self.store.milestones.list(filter={"id__in": completed})
        return sum(m.reward_points for m in milestones)

    async def account_summary(self, address: str) -> dict:
        """Counters, completions, points and per-milestone progress for one account."""
        stats = await self.store.accounts.get(user_address=address)
        milestones = await self.store.milestones.list(order=["category", "target", "id"])
        completed = await self.completed_ids(address)

        items = []
        for m in milestones:
            current = counter_value(stats, m.category)
            items.append({
                "id": m.id,
                "slug": m.slug,
                "title": m.title,
                "description": m.description,
                "category": m.category,
                "target": m.target,
                "icon": m.icon,
                "reward_points": m.reward_points,
                "current": min(current, m.target),
                "progress": progress(current, m.target),
                "completed": m.id in completed,
            })

        return {
            "user_address": address,
            "counters": {category: counter_value(stats, category) for category in CATEGORIES},
            "total_points": sum(m.reward_points for m in milestones if m.id in completed),
            "completed": len(completed),
            "milestones": items,
        }
