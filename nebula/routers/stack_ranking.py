from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.models.workspace import Workspace
from nebula.schemas.voting import (
    BordaScoreResponse,
    RankingBulkSubmit,
    RankingProgressResponse,
    RankingResponse,
    RankingStatusResponse,
)
from nebula.services.stack_ranking_manager import StackRankingManager, get_stack_ranking_manager
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}/rankings", tags=["stack-ranking"])
logger = logging.getLogger("app")


@router.post("/bulk", response_model=List[RankingResponse])
async def submit_rankings(
    payload: RankingBulkSubmit,
    context: ParticipantContext = Depends(get_participant_context),
    manager: StackRankingManager = Depends(get_stack_ranking_manager),
):
    rankings = manager.submit_rankings(context, payload.rankings)
    await websocket_manager.publish(
        context.workspace_id,
        "ranking_submitted",
        {"participantId": context.participant_id, "count": len(rankings)},
        participant_id=context.participant_id,
    )
    return rankings


@router.get("/leaderboard", response_model=List[BordaScoreResponse])
def get_leaderboard(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: StackRankingManager = Depends(get_stack_ranking_manager),
):
    return [BordaScoreResponse.model_validate(score) for score in manager.leaderboard(workspace.id)]


@router.get("/progress", response_model=RankingProgressResponse)
def get_progress(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: StackRankingManager = Depends(get_stack_ranking_manager),
):
    return RankingProgressResponse.model_validate(manager.progress(workspace.id))


@router.get("/status", response_model=RankingStatusResponse)
def get_status(
    context: ParticipantContext = Depends(get_participant_context),
    manager: StackRankingManager = Depends(get_stack_ranking_manager),
):
    rankings = manager.participant_rankings(context)
    return RankingStatusResponse(
        participant_id=context.participant_id,
        has_completed=manager.has_completed(context),
        total_notes=len(manager.ranking_notes(context.workspace_id)),
        rankings=[RankingResponse.model_validate(row) for row in rankings],
    )
