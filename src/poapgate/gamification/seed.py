"""Milestone seed data, inserted on startup when missing."""

from __future__ import annotations

import logging

from poapgate.db.models import Milestone
from poapgate.errors import UniqueConstraintViolation
from poapgate.mirror.store import MirrorStore

logger = logging.getLogger(__name__)

MILESTONE_SEED_DATA: list[dict] = [
    # Posts
    {
        "slug": "first_post",
        "title": "First Words",
        "description": "Publish your first community post",
        "category": "posts",
        "target": 1,
        "icon": "target",
        "reward_points": 10,
        "sort_order": 1,
    },
    {
        "slug": "posts_5",
        "title": "Regular Voice",
        "description": "Publish 5 community posts",
        "category": "posts",
        "target": 5,
        "icon": "trending",
        "reward_points": 25,
        "sort_order": 2,
    },
    {
        "slug": "posts_25",
        "title": "Storyteller",
        "description": "Publish 25 community posts",
        "category": "posts",
        "target": 25,
        "icon": "trophy",
        "reward_points": 100,
        "sort_order": 3,
    },
    # Votes
    {
        "slug": "first_vote",
        "title": "Civic Duty",
        "description": "Cast your first vote on a proposal",
        "category": "votes",
        "target": 1,
        "icon": "target",
        "reward_points": 10,
        "sort_order": 4,
    },
    {
        "slug": "votes_10",
        "title": "Engaged Citizen",
        "description": "Vote on 10 proposals",
        "category": "votes",
        "target": 10,
        "icon": "award",
        "reward_points": 50,
        "sort_order": 5,
    },
    # Likes
    {
        "slug": "first_like",
        "title": "Appreciator",
        "description": "Like a community post",
        "category": "likes",
        "target": 1,
        "icon": "target",
        "reward_points": 5,
        "sort_order": 6,
    },
    {
        "slug": "likes_50",
        "title": "Cheerleader",
        "description": "Like 50 community posts",
        "category": "likes",
        "target": 50,
        "icon": "trending",
        "reward_points": 40,
        "sort_order": 7,
    },
    # POAPs
    {
        "slug": "first_poap",
        "title": "I Was There",
        "description": "Hold your first POAP",
        "category": "poaps",
        "target": 1,
        "icon": "award",
        "reward_points": 20,
        "sort_order": 8,
    },
    {
        "slug": "poaps_10",
        "title": "Collector",
        "description": "Hold 10 POAPs",
        "category": "poaps",
        "target": 10,
        "icon": "trophy",
        "reward_points": 150,
        "sort_order": 9,
    },
]


async def seed_milestones(store: MirrorStore, data: list[dict] | None = None) -> int:
    """Insert milestone definitions that are missing by slug. Returns how many were added."""
    added = 0
    for row in data if data is not None else MILESTONE_SEED_DATA:
        if await store.milestones.get(slug=row["slug"]) is not None:
            continue
        try:
            await store.milestones.insert(Milestone(**row))
        except UniqueConstraintViolation:
            continue
        added += 1

    if added:
        logger.info("Seeded %d milestone definitions", added)
    return added
