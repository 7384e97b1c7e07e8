from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from ..config.loader import get_notes_limits
from ..database import get_db
from ..models.note import Category, Note
from ..models.workspace import Participant, Workspace
from ..schemas.note import NoteCreate, NoteUpdate
from .workspace_manager import is_closed

logger = logging.getLogger("app")

VISIBILITY_RANKING = "ranking"
VISIBILITY_MARKETPLACE = "marketplace"


class NotesManager:
    """Manages idea (note) records for a workspace."""

    def __init__(self, db: Session):
        self.db = db

    def _clean_content(self, content: Optional[str]) -> str:
        text = (content or "").strip()
        if not text:
            raise HTTPException(status_code=400, detail="Idea content cannot be empty.")
        limit = get_notes_limits()["content_character_limit"]
        if len(text) > limit:
            raise HTTPException(
                status_code=400,
                detail=f"Idea content exceeds the {limit} character limit.",
            )
        return text

    def _check_category(self, workspace_id: str, category_id: Optional[str]) -> Optional[str]:
        if category_id is None:
            return None
        category = self.db.get(Category, category_id)
        if category is None or category.workspace_id != workspace_id:
            raise HTTPException(status_code=400, detail="Category does not belong to this workspace.")
        return category.id

    def _ensure_writable(self, workspace: Workspace) -> None:
        if is_closed(workspace.status):
            raise HTTPException(
                status_code=403, detail="This workspace is closed to new changes."
            )

    def list_notes(self, workspace_id: str, visible_in: Optional[str] = None) -> List[Note]:
        """Notes in stable creation order, optionally limited to one module's idea set."""
        query = self.db.query(Note).filter(Note.workspace_id == workspace_id)
        if visible_in == VISIBILITY_RANKING:
            query = query.filter(Note.visible_in_ranking.is_(True))
        elif visible_in == VISIBILITY_MARKETPLACE:
            query = query.filter(Note.visible_in_marketplace.is_(True))
        return query.order_by(Note.created_at, Note.id).all()

    def get_note(self, workspace_id: str, note_id: str) -> Note:
        note = self.db.get(Note, note_id)
        if note is None or note.workspace_id != workspace_id:
            raise HTTPException(status_code=404, detail="Note not found")
        return note

    def create_note(self, workspace: Workspace, payload: NoteCreate) -> Note:
        self._ensure_writable(workspace)
        if payload.participant_id is not None:
            participant = self.db.get(Participant, payload.participant_id)
            if participant is None or participant.workspace_id != workspace.id:
                raise HTTPException(
                    status_code=400, detail="Participant does not belong to this workspace."
                )
        note = Note(
            workspace_id=workspace.id,
            participant_id=payload.participant_id,
            content=self._clean_content(payload.content),
            category_id=self._check_category(workspace.id, payload.category_id),
            is_manual_override=payload.category_id is not None,
            source=payload.source,
            visible_in_ranking=payload.visible_in_ranking,
            visible_in_marketplace=payload.visible_in_marketplace,
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def import_notes(
        self, workspace: Workspace, contents: Sequence[str], category_id: Optional[str] = None
    ) -> List[Note]:
        """All-or-nothing: one bad line rejects the whole batch."""
        self._ensure_writable(workspace)
        limits = get_notes_limits()
        if len(contents) > limits["max_import_batch"]:
            raise HTTPException(
                status_code=400,
                detail=f"Import is limited to {limits['max_import_batch']} ideas per batch.",
            )
        resolved_category = self._check_category(workspace.id, category_id)
        cleaned = []
        for index, content in enumerate(contents, start=1):
            try:
                cleaned.append(self._clean_content(content))
            except HTTPException as exc:
                raise HTTPException(
                    status_code=400, detail=f"Line {index}: {exc.detail}"
                ) from exc

        notes = [
            Note(
                workspace_id=workspace.id,
                content=text,
                category_id=resolved_category,
                is_manual_override=resolved_category is not None,
                source="import",
            )
            for text in cleaned
        ]
        self.db.add_all(notes)
        self.db.commit()
        for note in notes:
            self.db.refresh(note)
        logger.info("Imported %s ideas into workspace %s", len(notes), workspace.id)
        return notes

    def update_note(self, workspace: Workspace, note_id: str, payload: NoteUpdate) -> Note:
        self._ensure_writable(workspace)
        note = self.get_note(workspace.id, note_id)
        provided = payload.model_fields_set
        if "content" in provided and payload.content is not None:
            note.content = self._clean_content(payload.content)
        if "category_id" in provided:
            note.category_id = self._check_category(workspace.id, payload.category_id)
            note.is_manual_override = True
            note.is_ai_category = False
        if payload.visible_in_ranking is not None:
            note.visible_in_ranking = payload.visible_in_ranking
        if payload.visible_in_marketplace is not None:
            note.visible_in_marketplace = payload.visible_in_marketplace
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete_note(self, workspace: Workspace, note_id: str) -> None:
        self._ensure_writable(workspace)
        note = self.get_note(workspace.id, note_id)
        self.db.delete(note)
        self.db.commit()


def get_notes_manager(db: Session = Depends(get_db)) -> NotesManager:
    """Dependency provider for NotesManager."""
    return NotesManager(db=db)
