from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.models.workspace import Workspace
from nebula.schemas.voting import (
    NextPairResponse,
    NotePairResponse,
    PairwiseProgressResponse,
    PairwiseStatResponse,
    VoteCreate,
    VoteResponse,
)
from nebula.services.pairwise_manager import PairwiseManager, get_pairwise_manager
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["pairwise-voting"])


@router.post("/votes", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def record_vote(
    payload: VoteCreate,
    context: ParticipantContext = Depends(get_participant_context),
    manager: PairwiseManager = Depends(get_pairwise_manager),
):
    vote = manager.record_vote(context, payload.winner_note_id, payload.loser_note_id)
    await websocket_manager.publish(
        context.workspace_id,
        "vote_recorded",
        {"winnerNoteId": vote.winner_note_id, "loserNoteId": vote.loser_note_id},
        participant_id=context.participant_id,
    )
    return vote


@router.get("/pairwise/next-pair", response_model=NextPairResponse)
def get_next_pair(
    workspace: Workspace = Depends(get_workspace_or_404),
    context: ParticipantContext = Depends(get_participant_context),
    manager: PairwiseManager = Depends(get_pairwise_manager),
):
    pair, progress, message = manager.next_pair(context, workspace)
    return NextPairResponse(
        pair=NotePairResponse.model_validate(pair, from_attributes=True) if pair else None,
        progress=PairwiseProgressResponse.model_validate(progress),
        message=message,
    )


@router.get("/pairwise/stats", response_model=List[PairwiseStatResponse])
def get_pairwise_stats(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: PairwiseManager = Depends(get_pairwise_manager),
):
    return [PairwiseStatResponse.model_validate(stat) for stat in manager.vote_stats(workspace.id)]
