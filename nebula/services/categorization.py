from __future__ import annotations

import json
import logging
from typing import Dict, List, Tuple

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from nebula.data.notes_manager import NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.models.note import Category, Note
from nebula.models.workspace import Workspace
from nebula.schemas.results import CategorizationPayload
from nebula.services.ai_usage import log_ai_usage
from nebula.services.llm_client import LLMCallError, LLMClient, parse_json_object
from nebula.services.results_generator import ResultsGenerationError

logger = logging.getLogger("app")

CATEGORY_COLORS = (
    "#4F46E5",
    "#0EA5E9",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
)

CATEGORIZATION_SYSTEM_PROMPT = (
    "You organise workshop ideas into themes. Group the ideas into between 3 and 7 "
    "categories. Every category name is 2 to 4 words. Assign every idea to exactly one "
    "category and write a one-paragraph summary of the themes. Respond with a single "
    "JSON object."
)


def build_categorization_prompt(workspace: Workspace, notes: List[Note]) -> str:
    ideas = [{"noteId": note.id, "content": note.content} for note in notes]
    return (
        f"Workshop: {workspace.name}\n"
        f"Purpose: {workspace.purpose or 'Not specified'}\n\n"
        f"Ideas:\n{json.dumps(ideas, indent=2)}\n\n"
        'Return JSON: {"categories": [{"noteId": string, "category": string}], '
        '"summary": string}'
    )


class CategorizationService:
    """Assigns AI-suggested categories to a workspace's ideas."""

    def __init__(self, db: Session, llm_client: LLMClient) -> None:
        self.db = db
        self.llm = llm_client
        self.workspaces = WorkspaceManager(db)
        self.notes = NotesManager(db)

    def _category_for(
        self, workspace: Workspace, name: str, cache: Dict[str, Category]
    ) -> Tuple[Category, bool]:
        key = name.strip().lower()
        if key in cache:
            return cache[key], False
        category = self.workspaces.find_category_by_name(workspace.id, name)
        created = False
        if category is None:
            existing = len(self.workspaces.list_categories(workspace.id))
            category = Category(
                workspace_id=workspace.id,
                name=name.strip(),
                color=CATEGORY_COLORS[existing % len(CATEGORY_COLORS)],
            )
            self.db.add(category)
            self.db.flush()
            created = True
        cache[key] = category
        return category, created

    async def categorize(self, workspace: Workspace) -> Tuple[str, int, List[Note]]:
        """Returns (summary, categories created, notes that received an AI category)."""
        notes = self.notes.list_notes(workspace.id)
        if not notes:
            raise HTTPException(status_code=400, detail="No notes to categorize.")

        try:
            response = await self.llm.complete_json(
                CATEGORIZATION_SYSTEM_PROMPT, build_categorization_prompt(workspace, notes)
            )
        except LLMCallError as exc:
            raise ResultsGenerationError(str(exc)) from exc
        log_ai_usage(
            self.db,
            operation="categorization",
            model=response.model,
            usage=response.usage,
            workspace_id=workspace.id,
            organization_id=workspace.organization_id,
        )

        try:
            payload = CategorizationPayload.model_validate(parse_json_object(response.content))
        except (LLMCallError, ValidationError) as exc:
            raise ResultsGenerationError(f"Invalid categorization response from AI: {exc}") from exc

        by_id = {note.id: note for note in notes}
        cache: Dict[str, Category] = {}
        created_count = 0
        assigned: List[Note] = []
        for assignment in payload.categories:
            note = by_id.get(assignment.note_id)
            if note is None or note.is_manual_override:
                continue
            category, created = self._category_for(workspace, assignment.category, cache)
            created_count += int(created)
            note.category_id = category.id
            note.is_ai_category = True
            assigned.append(note)

        self.db.commit()
        for note in assigned:
            self.db.refresh(note)
        logger.info(
            "Categorized %s notes into %s new categories for workspace %s",
            len(assigned),
            created_count,
            workspace.id,
        )
        return payload.summary, created_count, assigned
