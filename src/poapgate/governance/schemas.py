"""Proposal Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class OptionTally(BaseModel):
    index: int
    label: str
    votes: int
    percentage: float


class ProposalResponse(BaseModel):
    id: int
    ledger_proposal_id: int | None = None
    title: str
    description: str
    created_by: str
    start_block: int
    end_block: int
    status: str
    total_votes: int
    options: list[OptionTally]
    created_at: datetime


class ProposalListResponse(BaseModel):
    proposals: list[ProposalResponse]
    total: int


class WinnerResponse(BaseModel):
    proposal_id: int
    ledger_proposal_id: int
    option_index: int
    label: str
