from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from nebula.data.context import get_workspace_or_404
from nebula.data.workspace_manager import WorkspaceManager, get_workspace_manager
from nebula.models.workspace import Workspace
from nebula.schemas.workspace import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ModuleCatalogEntry,
    ModuleConfigure,
    ModuleResponse,
    ModuleRunResponse,
    ModuleUpdate,
    OrganizationCreate,
    OrganizationResponse,
    ParticipantJoin,
    ParticipantResponse,
    WorkspaceCreate,
    WorkspaceOverview,
    WorkspaceResponse,
    WorkspaceUpdate,
)
from nebula.services import module_catalog
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api", tags=["workspaces"])
logger = logging.getLogger("app")


@router.post(
    "/organizations",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_organization(
    payload: OrganizationCreate,
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    return manager.create_organization(payload.name, payload.slug)


@router.get("/modules/catalog", response_model=List[ModuleCatalogEntry])
def get_module_catalog():
    return module_catalog.module_catalog()


@router.post(
    "/workspaces",
    response_model=WorkspaceResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_workspace(
    payload: WorkspaceCreate,
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    workspace = manager.create_workspace(payload)
    logger.info("Workspace %s created with code %s", workspace.id, workspace.code)
    return workspace


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceResponse)
def get_workspace(workspace: Workspace = Depends(get_workspace_or_404)):
    return workspace


@router.patch("/workspaces/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    payload: WorkspaceUpdate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    updated = manager.update_workspace(workspace, payload)
    await websocket_manager.publish(
        updated.id, "workspace_updated", {"workspaceId": updated.id, "status": updated.status}
    )
    return updated


@router.get("/workspaces/{workspace_id}/overview", response_model=WorkspaceOverview)
def get_workspace_overview(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    return WorkspaceOverview(
        workspace=WorkspaceResponse.model_validate(workspace),
        participants=[
            ParticipantResponse.model_validate(item)
            for item in manager.list_participants(workspace.id)
        ],
        categories=[
            CategoryResponse.model_validate(item) for item in manager.list_categories(workspace.id)
        ],
        modules=[ModuleResponse.model_validate(item) for item in manager.list_modules(workspace.id)],
    )


# Participants


@router.post(
    "/workspaces/{workspace_id}/participants",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_workspace(
    payload: ParticipantJoin,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    participant = manager.add_participant(
        workspace, payload.display_name, is_guest=payload.is_guest
    )
    await websocket_manager.publish(
        workspace.id,
        "participant_added",
        {"participantId": participant.id, "displayName": participant.display_name},
        participant_id=participant.id,
    )
    return participant


@router.get(
    "/workspaces/{workspace_id}/participants", response_model=List[ParticipantResponse]
)
def list_participants(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    return manager.list_participants(workspace.id)


# Categories


@router.get("/workspaces/{workspace_id}/categories", response_model=List[CategoryResponse])
def list_categories(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    return manager.list_categories(workspace.id)


@router.post(
    "/workspaces/{workspace_id}/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    payload: CategoryCreate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    category = manager.create_category(workspace, payload)
    await websocket_manager.publish(workspace.id, "categories_updated", {"categoryId": category.id})
    return category


@router.patch(
    "/workspaces/{workspace_id}/categories/{category_id}", response_model=CategoryResponse
)
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    category = manager.update_category(workspace, category_id, payload)
    await websocket_manager.publish(workspace.id, "categories_updated", {"categoryId": category.id})
    return category


@router.delete(
    "/workspaces/{workspace_id}/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_category(
    category_id: str,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    manager.delete_category(workspace, category_id)
    await websocket_manager.publish(workspace.id, "categories_updated", {"categoryId": category_id})


# Modules


@router.get("/workspaces/{workspace_id}/modules", response_model=List[ModuleResponse])
def list_modules(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    return manager.list_modules(workspace.id)


@router.post("/workspaces/{workspace_id}/modules", response_model=ModuleResponse)
async def configure_module(
    payload: ModuleConfigure,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    module = manager.configure_module(workspace, payload)
    await websocket_manager.publish(
        workspace.id,
        "module_configured",
        {"moduleId": module.id, "moduleType": module.module_type, "enabled": module.enabled},
    )
    return module


@router.patch("/workspaces/{workspace_id}/modules/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: str,
    payload: ModuleUpdate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    module = manager.update_module(workspace, module_id, payload)
    await websocket_manager.publish(
        workspace.id,
        "module_updated",
        {"moduleId": module.id, "moduleType": module.module_type, "enabled": module.enabled},
    )
    return module


@router.post(
    "/workspaces/{workspace_id}/modules/{module_id}/runs",
    response_model=ModuleRunResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_module_run(
    module_id: str,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    run = manager.start_module_run(workspace, module_id)
    await websocket_manager.publish(
        workspace.id, "module_run_started", {"moduleId": module_id, "runId": run.id}
    )
    return run


@router.post(
    "/workspaces/{workspace_id}/module-runs/{run_id}/complete",
    response_model=ModuleRunResponse,
)
async def complete_module_run(
    run_id: str,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: WorkspaceManager = Depends(get_workspace_manager),
):
    run = manager.complete_module_run(workspace, run_id)
    await websocket_manager.publish(workspace.id, "module_run_completed", {"runId": run.id})
    return run
