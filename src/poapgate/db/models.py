"""ORM models for the mirror store collections.

Posts, likes, activity counters and milestone completions are owned here.
Proposals and votes are caches of ledger-submitted state.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from poapgate.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
PKType = BigInteger().with_variant(Integer(), "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class UserStats(Base):
    """Per-account activity counters. Monotonically non-decreasing."""

    __tablename__ = "user_stats"

    user_address: Mapped[str] = mapped_column(String(128), primary_key=True)
    posts_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    votes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    likes_given: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    poaps_owned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(PKType, primary_key=True, autoincrement=True)
    user_address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Like(Base):
    """One like per (post, account)."""

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("post_id", "user_address", name="likes_post_id_user_address_key"),
    )

    id: Mapped[int] = mapped_column(PKType, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_address: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


class Proposal(Base):
    """Mirror of a ledger proposal.

    ``id`` is the mirror's own key and is authoritative inside this system.
    ``ledger_proposal_id`` is filled in once the creation transaction is
    confirmed and its result read back.
    """

    __tablename__ = "proposals"
    __table_args__ = (
        CheckConstraint("total_votes >= 0", name="proposals_total_votes_check"),
        CheckConstraint("status IN ('active', 'ended')", name="proposals_status_check"),
    )

    id: Mapped[int] = mapped_column(PKType, primary_key=True, autoincrement=True)
    ledger_proposal_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, unique=True)
    ledger_tx_id: Mapped[str | None] = mapped_column(String(66), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    start_block: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    end_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSONType, nullable=False)
    votes: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Vote(Base):
    """UNIQUE(proposal_id, user_address) is the backstop against double counting."""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("proposal_id", "user_address", name="votes_proposal_id_user_address_key"),
    )

    id: Mapped[int] = mapped_column(PKType, primary_key=True, autoincrement=True)
    proposal_id: Mapped[int] = mapped_column(ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False)
    user_address: Mapped[str] = mapped_column(String(128), nullable=False)
    option_index: Mapped[int] = mapped_column(Integer, nullable=False)
    ledger_tx_id: Mapped[str | None] = mapped_column(String(66), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------


class Milestone(Base):
    """Milestone definitions, seeded on startup."""

    __tablename__ = "milestones"
    __table_args__ = (
        CheckConstraint("target > 0", name="milestones_target_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    icon: Mapped[str] = mapped_column(String(32), nullable=False, default="trophy")
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class UserMilestone(Base):
    """Milestone completions: UNIQUE(user_address, milestone_id) prevents duplicates."""

    __tablename__ = "user_milestones"
    __table_args__ = (
        UniqueConstraint("user_address", "milestone_id", name="user_milestones_user_address_milestone_id_key"),
    )

    id: Mapped[int] = mapped_column(PKType, primary_key=True, autoincrement=True)
    user_address: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    milestone_id: Mapped[int] = mapped_column(ForeignKey("milestones.id"), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
