from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

NoteSource = Literal["participant", "facilitator", "import"]


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    source: NoteSource = "participant"
    participant_id: Optional[str] = None
    visible_in_ranking: bool = True
    visible_in_marketplace: bool = True


class NoteUpdate(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1)
    category_id: Optional[str] = None
    visible_in_ranking: Optional[bool] = None
    visible_in_marketplace: Optional[bool] = None


class NoteImportRequest(BaseModel):
    contents: List[str] = Field(..., min_length=1)
    category_id: Optional[str] = None


class NoteResponse(BaseModel):
    id: str
    workspace_id: str
    participant_id: Optional[str] = None
    content: str
    category_id: Optional[str] = None
    is_manual_override: bool = False
    is_ai_category: bool = False
    source: str
    visible_in_ranking: bool = True
    visible_in_marketplace: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategorizationResponse(BaseModel):
    summary: str
    categories_created: int = 0
    notes_categorized: int = 0
    notes: List[NoteResponse] = Field(default_factory=list)
