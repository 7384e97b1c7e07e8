"""Priority matrix and staircase boards: shared placement surfaces per module run."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.models.workspace import Workspace
from nebula.schemas.positions import (
    MatrixBoardResponse,
    MatrixPositionResponse,
    MatrixPositionUpsert,
    StaircaseBoardResponse,
    StaircasePositionResponse,
    StaircasePositionUpsert,
)
from nebula.services.priority_matrix_manager import (
    PriorityMatrixManager,
    get_priority_matrix_manager,
)
from nebula.services.staircase_manager import StaircaseManager, get_staircase_manager
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["boards"])


@router.get("/priority-matrix", response_model=MatrixBoardResponse)
def get_matrix_board(
    module_run_id: Optional[str] = Query(default=None),
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: PriorityMatrixManager = Depends(get_priority_matrix_manager),
):
    config, positions = manager.board(workspace.id, module_run_id)
    return MatrixBoardResponse(
        config=config,
        positions=[MatrixPositionResponse.model_validate(row) for row in positions],
    )


@router.put("/priority-matrix/positions", response_model=MatrixPositionResponse)
async def upsert_matrix_position(
    payload: MatrixPositionUpsert,
    context: ParticipantContext = Depends(get_participant_context),
    manager: PriorityMatrixManager = Depends(get_priority_matrix_manager),
):
    position = manager.upsert_position(context, payload)
    await websocket_manager.publish(
        context.workspace_id,
        "matrix_position_updated",
        {
            "noteId": position.note_id,
            "moduleRunId": position.module_run_id,
            "x": position.x_coord,
            "y": position.y_coord,
        },
        participant_id=context.participant_id,
    )
    return position


@router.get("/staircase", response_model=StaircaseBoardResponse)
def get_staircase_board(
    module_run_id: Optional[str] = Query(default=None),
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: StaircaseManager = Depends(get_staircase_manager),
):
    config, positions = manager.board(workspace.id, module_run_id)
    return StaircaseBoardResponse(
        config=config,
        positions=[StaircasePositionResponse.model_validate(row) for row in positions],
    )


@router.post("/staircase-positions", response_model=StaircasePositionResponse)
async def upsert_staircase_position(
    payload: StaircasePositionUpsert,
    context: ParticipantContext = Depends(get_participant_context),
    manager: StaircaseManager = Depends(get_staircase_manager),
):
    position = manager.upsert_position(context, payload)
    await websocket_manager.publish(
        context.workspace_id,
        "staircase_position_updated",
        {
            "noteId": position.note_id,
            "moduleRunId": position.module_run_id,
            "score": position.score,
            "slotOffset": position.slot_offset,
        },
        participant_id=context.participant_id,
    )
    return position
