from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.database import get_db
from nebula.models.positions import PriorityMatrixPosition
from nebula.schemas.positions import MatrixPositionUpsert
from nebula.services import module_catalog


def snap_coordinate(value: float, grid_size: int) -> float:
    """Nearest grid line for a board divided into ``grid_size`` cells per axis."""
    return round(value * grid_size) / grid_size


class PriorityMatrixManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)
        self.workspaces = WorkspaceManager(db)

    def config(self, workspace_id: str) -> Dict[str, Any]:
        return self.workspaces.module_config(workspace_id, module_catalog.PRIORITY_MATRIX)

    def positions(
        self, workspace_id: str, module_run_id: Optional[str] = None
    ) -> List[PriorityMatrixPosition]:
        query = self.db.query(PriorityMatrixPosition).filter(
            PriorityMatrixPosition.workspace_id == workspace_id
        )
        if module_run_id is None:
            query = query.filter(PriorityMatrixPosition.module_run_id.is_(None))
        else:
            query = query.filter(PriorityMatrixPosition.module_run_id == module_run_id)
        return query.order_by(PriorityMatrixPosition.note_id).all()

    def board(
        self, workspace_id: str, module_run_id: Optional[str] = None
    ) -> Tuple[Dict[str, Any], List[PriorityMatrixPosition]]:
        return self.config(workspace_id), self.positions(workspace_id, module_run_id)

    def upsert_position(
        self, context: ParticipantContext, payload: MatrixPositionUpsert
    ) -> PriorityMatrixPosition:
        """One position per (idea, module run); later placements overwrite earlier ones."""
        if not (0 <= payload.x_coord <= 1 and 0 <= payload.y_coord <= 1):
            raise HTTPException(status_code=400, detail="Coordinates must be between 0 and 1")
        note = self.notes.get_note(context.workspace_id, payload.note_id)
        run_id = self.workspaces.require_module_run(context.workspace_id, payload.module_run_id)

        x_coord, y_coord = payload.x_coord, payload.y_coord
        config = self.config(context.workspace_id)
        if config.get("snap_to_grid"):
            x_coord = snap_coordinate(x_coord, config["grid_size"])
            y_coord = snap_coordinate(y_coord, config["grid_size"])

        position = next(
            (row for row in self.positions(context.workspace_id, run_id) if row.note_id == note.id),
            None,
        )
        if position is None:
            position = PriorityMatrixPosition(
                workspace_id=context.workspace_id,
                module_run_id=run_id,
                note_id=note.id,
            )
            self.db.add(position)
        position.participant_id = context.participant_id
        position.x_coord = x_coord
        position.y_coord = y_coord
        self.db.commit()
        self.db.refresh(position)
        return position


def get_priority_matrix_manager(db: Session = Depends(get_db)) -> PriorityMatrixManager:
    return PriorityMatrixManager(db)
