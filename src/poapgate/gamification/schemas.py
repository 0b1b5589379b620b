"""Milestone and account Pydantic schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class MilestoneDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    title: str
    description: str
    category: str
    target: int
    icon: str
    reward_points: int


class AllMilestonesResponse(BaseModel):
    milestones: list[MilestoneDefinitionResponse]


class MilestoneProgressItem(MilestoneDefinitionResponse):
    current: int
    progress: float
    completed: bool


class AccountCounters(BaseModel):
    posts: int = 0
    votes: int = 0
    likes: int = 0
    poaps: int = 0


class AccountSummaryResponse(BaseModel):
    user_address: str
    counters: AccountCounters
    total_points: int
    completed: int
    milestones: list[MilestoneProgressItem]


class CredentialStatusResponse(BaseModel):
    user_address: str
    has_credential: bool
    poap_count: int | None = None


class SyncCredentialsResponse(BaseModel):
    user_address: str
    poaps_owned: int
    milestones_awarded: list[MilestoneDefinitionResponse]
