from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from nebula.data.context import get_workspace_or_404
from nebula.data.notes_manager import NotesManager, get_notes_manager
from nebula.data.workspace_manager import WorkspaceManager, get_workspace_manager
from nebula.models.workspace import Workspace
from nebula.services import export
from nebula.services.marketplace_manager import MarketplaceManager, get_marketplace_manager
from nebula.services.pairwise_manager import PairwiseManager, get_pairwise_manager
from nebula.services.stack_ranking_manager import StackRankingManager, get_stack_ranking_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}/export", tags=["export"])
logger = logging.getLogger("app")


def _download(content: str, media_type: str, filename: str) -> Response:
    logger.info("Export generated: %s", filename)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/pairwise")
def export_pairwise(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: PairwiseManager = Depends(get_pairwise_manager),
    workspaces: WorkspaceManager = Depends(get_workspace_manager),
):
    report = export.pairwise_report(
        manager.vote_stats(workspace.id), workspaces.list_categories(workspace.id)
    )
    return _download(
        report, "text/plain", export.export_filename("pairwise-voting", workspace.id, "txt")
    )


@router.get("/ranking")
def export_ranking(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: StackRankingManager = Depends(get_stack_ranking_manager),
    workspaces: WorkspaceManager = Depends(get_workspace_manager),
):
    report = export.ranking_report(
        manager.leaderboard(workspace.id), workspaces.list_categories(workspace.id)
    )
    return _download(
        report, "text/plain", export.export_filename("stack-ranking", workspace.id, "txt")
    )


@router.get("/marketplace")
def export_marketplace(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: MarketplaceManager = Depends(get_marketplace_manager),
    workspaces: WorkspaceManager = Depends(get_workspace_manager),
):
    report = export.marketplace_report(
        manager.leaderboard(workspace.id), workspaces.list_categories(workspace.id)
    )
    return _download(
        report,
        "text/plain",
        export.export_filename("marketplace-allocation", workspace.id, "txt"),
    )


@router.get("/data-csv")
def export_ideas_csv(
    workspace: Workspace = Depends(get_workspace_or_404),
    notes: NotesManager = Depends(get_notes_manager),
    workspaces: WorkspaceManager = Depends(get_workspace_manager),
):
    content = export.ideas_csv(
        notes.list_notes(workspace.id),
        workspaces.list_categories(workspace.id),
        workspaces.list_participants(workspace.id),
    )
    return _download(
        content, "text/csv", export.export_filename("workspace-data", workspace.id, "csv")
    )


@router.get("/categories-csv")
def export_categories_csv(
    workspace: Workspace = Depends(get_workspace_or_404),
    workspaces: WorkspaceManager = Depends(get_workspace_manager),
):
    content = export.categories_csv(workspaces.list_categories(workspace.id))
    return _download(
        content, "text/csv", export.export_filename("categories", workspace.id, "csv")
    )
