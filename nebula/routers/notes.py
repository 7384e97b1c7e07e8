from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from nebula.data.context import get_workspace_or_404
from nebula.data.notes_manager import NotesManager, get_notes_manager
from nebula.database import get_db
from nebula.models.workspace import Workspace
from nebula.schemas.note import (
    CategorizationResponse,
    NoteCreate,
    NoteImportRequest,
    NoteResponse,
    NoteUpdate,
)
from nebula.services.categorization import CategorizationService
from nebula.services.llm_client import LLMCallError, LLMClient, get_llm_client
from nebula.services.results_generator import ResultsGenerationError
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["notes"])
logger = logging.getLogger("app")


def _note_event(note) -> dict:
    return {"noteId": note.id, "categoryId": note.category_id}


@router.get("/notes", response_model=List[NoteResponse])
def list_notes(
    visible_in: Optional[str] = Query(default=None, pattern="^(ranking|marketplace)$"),
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    return manager.list_notes(workspace.id, visible_in=visible_in)


@router.post("/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteCreate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    note = manager.create_note(workspace, payload)
    await websocket_manager.publish(
        workspace.id, "note_created", _note_event(note), participant_id=note.participant_id
    )
    return note


@router.post(
    "/notes/import",
    response_model=List[NoteResponse],
    status_code=status.HTTP_201_CREATED,
)
async def import_notes(
    payload: NoteImportRequest,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    notes = manager.import_notes(workspace, payload.contents, payload.category_id)
    await websocket_manager.publish(
        workspace.id, "note_created", {"noteIds": [note.id for note in notes]}
    )
    return notes


@router.get("/notes/{note_id}", response_model=NoteResponse)
def get_note(
    note_id: str,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    return manager.get_note(workspace.id, note_id)


@router.patch("/notes/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: str,
    payload: NoteUpdate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    note = manager.update_note(workspace, note_id, payload)
    await websocket_manager.publish(workspace.id, "note_updated", _note_event(note))
    return note


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: NotesManager = Depends(get_notes_manager),
):
    manager.delete_note(workspace, note_id)
    await websocket_manager.publish(workspace.id, "note_deleted", {"noteId": note_id})


@router.post("/categorize", response_model=CategorizationResponse)
async def categorize_notes(
    workspace: Workspace = Depends(get_workspace_or_404),
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
):
    service = CategorizationService(db, llm_client)
    try:
        summary, created, notes = await service.categorize(workspace)
    except (LLMCallError, ResultsGenerationError) as exc:
        logger.warning("Categorization failed for workspace %s: %s", workspace.id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    await websocket_manager.publish(
        workspace.id,
        "categories_updated",
        {"categoriesCreated": created, "notesCategorized": len(notes)},
    )
    return CategorizationResponse(
        summary=summary,
        categories_created=created,
        notes_categorized=len(notes),
        notes=[NoteResponse.model_validate(note) for note in notes],
    )
