"""Post Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from poapgate.gamification.schemas import MilestoneDefinitionResponse
from poapgate.ledger._c32 import is_valid_address


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_address: str
    title: str
    content: str
    likes_count: int
    comments_count: int
    created_at: datetime


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    total: int
    limit: int
    offset: int


class _WalletRequest(BaseModel):
    user_address: str

    @field_validator("user_address")
    @classmethod
    def _stacks_address(cls, value: str) -> str:
        if not is_valid_address(value):
            msg = "Invalid Stacks address"
            raise ValueError(msg)
        return value


class CreatePostRequest(_WalletRequest):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10_000)


class LikePostRequest(_WalletRequest):
    pass


class CreatePostResponse(BaseModel):
    post: PostResponse
    milestones_awarded: list[MilestoneDefinitionResponse]


class LikeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    user_address: str
    created_at: datetime


class LikePostResponse(BaseModel):
    like: LikeResponse
    milestones_awarded: list[MilestoneDefinitionResponse]
