from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Shapes the LLM must return. Validation is strict: no type coercion, every
# required key present, or the generated result is discarded.


class TopIdeaPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    note_id: str = Field(..., alias="noteId")
    content: str
    overall_rank: float = Field(..., alias="overallRank")
    category: Optional[str] = None
    pairwise_wins: Optional[float] = Field(default=None, alias="pairwiseWins")
    borda_score: Optional[float] = Field(default=None, alias="bordaScore")
    marketplace_coins: Optional[float] = Field(default=None, alias="marketplaceCoins")


class CohortResultPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    summary: str
    key_themes: List[str] = Field(..., alias="keyThemes")
    top_ideas: List[TopIdeaPayload] = Field(..., alias="topIdeas")
    insights: str
    recommendations: Optional[str] = None


class ContributionPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    note_id: str = Field(..., alias="noteId")
    content: str
    impact: str


class PersonalizedResultPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    personal_summary: str = Field(..., alias="personalSummary")
    alignment_score: float = Field(..., alias="alignmentScore", ge=0, le=100)
    top_contributions: List[ContributionPayload] = Field(..., alias="topContributions")
    insights: str
    recommendations: Optional[str] = None


class CategoryAssignmentPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    note_id: str = Field(..., alias="noteId")
    category: str = Field(..., min_length=1)


class CategorizationPayload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)

    categories: List[CategoryAssignmentPayload]
    summary: str


# API responses


class CohortResultResponse(BaseModel):
    id: str
    workspace_id: str
    summary: str
    key_themes: List[str] = Field(default_factory=list)
    top_ideas: List[Dict[str, Any]] = Field(default_factory=list)
    insights: str
    recommendations: Optional[str] = None
    result_metadata: Dict[str, Any] = Field(default_factory=dict)
    generated_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PublicCohortResultResponse(BaseModel):
    workspace_id: str
    summary: str
    key_themes: List[str] = Field(default_factory=list)
    top_ideas: List[Dict[str, Any]] = Field(default_factory=list)
    insights: str
    recommendations: Optional[str] = None

    model_config = {"from_attributes": True}


class CohortGenerateRequest(BaseModel):
    generated_by: Optional[str] = Field(default=None, max_length=120)


class PersonalizedResultResponse(BaseModel):
    id: str
    workspace_id: str
    participant_id: str
    cohort_result_id: Optional[str] = None
    personal_summary: str
    alignment_score: int
    top_contributions: List[Dict[str, Any]] = Field(default_factory=list)
    insights: str
    recommendations: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BatchGenerationResponse(BaseModel):
    cohort_result_id: Optional[str] = None
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
