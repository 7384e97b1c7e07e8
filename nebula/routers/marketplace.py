from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.models.workspace import Workspace
from nebula.schemas.voting import (
    AllocationBulkSubmit,
    AllocationProgressResponse,
    AllocationResponse,
    AllocationSubmitResponse,
    BudgetResponse,
    MarketplaceScoreResponse,
)
from nebula.services.marketplace_manager import MarketplaceManager, get_marketplace_manager
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["marketplace"])


@router.post("/marketplace-allocations/bulk", response_model=AllocationSubmitResponse)
async def submit_allocations(
    payload: AllocationBulkSubmit,
    workspace: Workspace = Depends(get_workspace_or_404),
    context: ParticipantContext = Depends(get_participant_context),
    manager: MarketplaceManager = Depends(get_marketplace_manager),
):
    allocations = manager.submit_allocations(context, workspace, payload.allocations)
    budget = manager.budget(context, workspace)
    await websocket_manager.publish(
        workspace.id,
        "marketplace_allocation_submitted",
        {"participantId": context.participant_id, "spent": budget["spent"]},
        participant_id=context.participant_id,
    )
    return AllocationSubmitResponse(
        **budget,
        allocations=[AllocationResponse.model_validate(row) for row in allocations],
    )


@router.get("/marketplace/leaderboard", response_model=List[MarketplaceScoreResponse])
def get_leaderboard(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: MarketplaceManager = Depends(get_marketplace_manager),
):
    return [
        MarketplaceScoreResponse.model_validate(score)
        for score in manager.leaderboard(workspace.id)
    ]


@router.get("/marketplace/progress", response_model=AllocationProgressResponse)
def get_progress(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: MarketplaceManager = Depends(get_marketplace_manager),
):
    return AllocationProgressResponse.model_validate(manager.progress(workspace.id))


@router.get("/marketplace/budget", response_model=BudgetResponse)
def get_budget(
    workspace: Workspace = Depends(get_workspace_or_404),
    context: ParticipantContext = Depends(get_participant_context),
    manager: MarketplaceManager = Depends(get_marketplace_manager),
):
    return BudgetResponse(**manager.budget(context, workspace))
