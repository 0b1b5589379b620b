"""Dashboard Pydantic schemas."""

from pydantic import BaseModel


class PlatformStatsResponse(BaseModel):
    total_posts: int
    total_proposals: int
    total_users: int
    active_proposals: int
