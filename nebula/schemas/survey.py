from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SurveyQuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    order_index: Optional[int] = Field(default=None, ge=0)


class SurveyQuestionResponse(BaseModel):
    id: str
    workspace_id: str
    question_text: str
    order_index: int

    model_config = {"from_attributes": True}


class SurveyResponseSubmit(BaseModel):
    question_id: str
    note_id: str
    score: int


class SurveyResponseOut(BaseModel):
    id: str
    participant_id: str
    question_id: str
    note_id: str
    score: int

    model_config = {"from_attributes": True}


class SurveyNoteSummary(BaseModel):
    note_id: str
    content: str
    average_score: float
    response_count: int


class SurveySummaryResponse(BaseModel):
    questions: List[SurveyQuestionResponse] = Field(default_factory=list)
    notes: List[SurveyNoteSummary] = Field(default_factory=list)
