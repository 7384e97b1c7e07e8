from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from nebula.schemas.note import NoteResponse


class VoteCreate(BaseModel):
    winner_note_id: str = Field(..., min_length=1)
    loser_note_id: str = Field(..., min_length=1)


class VoteResponse(BaseModel):
    id: str
    workspace_id: str
    participant_id: str
    winner_note_id: str
    loser_note_id: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotePairResponse(BaseModel):
    note_a: NoteResponse
    note_b: NoteResponse


class PairwiseProgressResponse(BaseModel):
    total_pairs: int
    completed_pairs: int
    percent_complete: int
    is_complete: bool

    model_config = {"from_attributes": True}


class NextPairResponse(BaseModel):
    pair: Optional[NotePairResponse] = None
    progress: PairwiseProgressResponse
    message: Optional[str] = None


class PairwiseStatResponse(BaseModel):
    note_id: str
    note: NoteResponse
    wins: int
    losses: int
    comparisons: int
    win_rate: float

    model_config = {"from_attributes": True}


class RankingEntry(BaseModel):
    note_id: str
    rank: int


class RankingBulkSubmit(BaseModel):
    rankings: List[RankingEntry] = Field(default_factory=list)


class RankingResponse(BaseModel):
    note_id: str
    rank: int

    model_config = {"from_attributes": True}


class BordaScoreResponse(BaseModel):
    note_id: str
    note: NoteResponse
    total_score: int
    average_rank: float
    participant_count: int

    model_config = {"from_attributes": True}


class RankingProgressResponse(BaseModel):
    total_participants: int
    completed_participants: int
    percent_complete: int
    is_complete: bool

    model_config = {"from_attributes": True}


class RankingStatusResponse(BaseModel):
    participant_id: str
    has_completed: bool
    total_notes: int
    rankings: List[RankingResponse] = Field(default_factory=list)


class AllocationEntry(BaseModel):
    note_id: str
    coins: int


class AllocationBulkSubmit(BaseModel):
    allocations: List[AllocationEntry] = Field(default_factory=list)


class AllocationResponse(BaseModel):
    note_id: str
    coins_allocated: int

    model_config = {"from_attributes": True}


class AllocationSubmitResponse(BaseModel):
    coin_budget: int
    spent: int
    remaining: int
    allocations: List[AllocationResponse] = Field(default_factory=list)


class MarketplaceScoreResponse(BaseModel):
    note_id: str
    note: NoteResponse
    total_coins: int
    average_coins: float
    participant_count: int

    model_config = {"from_attributes": True}


class AllocationProgressResponse(BaseModel):
    total_participants: int
    completed_participants: int
    percent_complete: int
    is_complete: bool

    model_config = {"from_attributes": True}


class BudgetResponse(BaseModel):
    coin_budget: int
    spent: int
    remaining: int
