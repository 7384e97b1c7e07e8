from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.database import get_db
from nebula.models.positions import StaircasePosition
from nebula.schemas.positions import StaircasePositionUpsert
from nebula.services import module_catalog


def _format_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class StaircaseManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)
        self.workspaces = WorkspaceManager(db)

    def config(self, workspace_id: str) -> Dict[str, Any]:
        return self.workspaces.module_config(workspace_id, module_catalog.STAIRCASE)

    def positions(
        self, workspace_id: str, module_run_id: Optional[str] = None
    ) -> List[StaircasePosition]:
        query = self.db.query(StaircasePosition).filter(
            StaircasePosition.workspace_id == workspace_id
        )
        if module_run_id is None:
            query = query.filter(StaircasePosition.module_run_id.is_(None))
        else:
            query = query.filter(StaircasePosition.module_run_id == module_run_id)
        return query.order_by(StaircasePosition.score.desc(), StaircasePosition.slot_offset).all()

    def board(
        self, workspace_id: str, module_run_id: Optional[str] = None
    ) -> Tuple[Dict[str, Any], List[StaircasePosition]]:
        return self.config(workspace_id), self.positions(workspace_id, module_run_id)

    def _validate_score(self, score: float, config: Dict[str, Any]) -> None:
        min_score, max_score = config["min_score"], config["max_score"]
        if score < min_score or score > max_score:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Score must be between {_format_bound(min_score)} "
                    f"and {_format_bound(max_score)}"
                ),
            )
        if not config["allow_decimals"] and not float(score).is_integer():
            raise HTTPException(status_code=400, detail="Score must be a whole number")

    def upsert_position(
        self, context: ParticipantContext, payload: StaircasePositionUpsert
    ) -> StaircasePosition:
        config = self.config(context.workspace_id)
        self._validate_score(payload.score, config)
        note = self.notes.get_note(context.workspace_id, payload.note_id)
        run_id = self.workspaces.require_module_run(context.workspace_id, payload.module_run_id)

        board = self.positions(context.workspace_id, run_id)
        position = next((row for row in board if row.note_id == note.id), None)
        slot_offset = payload.slot_offset
        if slot_offset is None:
            # Stack behind the other ideas already resting on this step.
            slot_offset = sum(
                1 for row in board if row.note_id != note.id and row.score == payload.score
            )

        if position is None:
            position = StaircasePosition(
                workspace_id=context.workspace_id,
                module_run_id=run_id,
                note_id=note.id,
            )
            self.db.add(position)
        position.participant_id = context.participant_id
        position.score = payload.score
        position.slot_offset = slot_offset
        self.db.commit()
        self.db.refresh(position)
        return position


def get_staircase_manager(db: Session = Depends(get_db)) -> StaircaseManager:
    return StaircaseManager(db)
