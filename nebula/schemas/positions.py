from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MatrixPositionUpsert(BaseModel):
    note_id: str
    x_coord: float
    y_coord: float
    module_run_id: Optional[str] = None


class MatrixPositionResponse(BaseModel):
    id: str
    workspace_id: str
    module_run_id: Optional[str] = None
    note_id: str
    participant_id: Optional[str] = None
    x_coord: float
    y_coord: float
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MatrixBoardResponse(BaseModel):
    config: Dict[str, Any] = Field(default_factory=dict)
    positions: List[MatrixPositionResponse] = Field(default_factory=list)


class StaircasePositionUpsert(BaseModel):
    note_id: str
    score: float
    slot_offset: Optional[int] = Field(default=None, ge=0)
    module_run_id: Optional[str] = None


class StaircasePositionResponse(BaseModel):
    id: str
    workspace_id: str
    module_run_id: Optional[str] = None
    note_id: str
    participant_id: Optional[str] = None
    score: float
    slot_offset: int
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StaircaseBoardResponse(BaseModel):
    config: Dict[str, Any] = Field(default_factory=dict)
    positions: List[StaircasePositionResponse] = Field(default_factory=list)
