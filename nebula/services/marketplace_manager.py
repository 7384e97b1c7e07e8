from __future__ import annotations

import logging
from typing import List, Sequence

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import VISIBILITY_MARKETPLACE, NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.database import get_db
from nebula.models.voting import MarketplaceAllocation
from nebula.models.workspace import Workspace
from nebula.schemas.voting import AllocationEntry
from nebula.services.marketplace import (
    AllocationProgress,
    MarketplaceScore,
    calculate_allocation_progress,
    calculate_marketplace_scores,
    participant_spend,
    remaining_budget,
    validate_allocation,
)

logger = logging.getLogger("app")


class MarketplaceManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)
        self.workspaces = WorkspaceManager(db)

    def _workspace_allocations(self, workspace_id: str) -> List[MarketplaceAllocation]:
        return (
            self.db.query(MarketplaceAllocation)
            .filter(MarketplaceAllocation.workspace_id == workspace_id)
            .all()
        )

    def participant_allocations(self, context: ParticipantContext) -> List[MarketplaceAllocation]:
        return (
            self.db.query(MarketplaceAllocation)
            .filter(
                MarketplaceAllocation.workspace_id == context.workspace_id,
                MarketplaceAllocation.participant_id == context.participant_id,
            )
            .all()
        )

    def submit_allocations(
        self,
        context: ParticipantContext,
        workspace: Workspace,
        entries: Sequence[AllocationEntry],
    ) -> List[MarketplaceAllocation]:
        """Replace the participant's allocations; zero-coin entries are not stored."""
        coin_budget = self.workspaces.coin_budget(workspace)
        result = validate_allocation(entries, coin_budget)
        if not result.valid:
            raise HTTPException(status_code=400, detail=result.error)

        note_ids = {
            note.id
            for note in self.notes.list_notes(workspace.id, visible_in=VISIBILITY_MARKETPLACE)
        }
        seen = set()
        for entry in entries:
            if entry.note_id not in note_ids:
                raise HTTPException(status_code=400, detail=f"Invalid note ID: {entry.note_id}")
            if entry.note_id in seen:
                raise HTTPException(
                    status_code=400, detail=f"Note allocated more than once: {entry.note_id}"
                )
            seen.add(entry.note_id)

        self.db.query(MarketplaceAllocation).filter(
            MarketplaceAllocation.workspace_id == workspace.id,
            MarketplaceAllocation.participant_id == context.participant_id,
        ).delete(synchronize_session=False)
        for entry in entries:
            if entry.coins <= 0:
                continue
            self.db.add(
                MarketplaceAllocation(
                    workspace_id=workspace.id,
                    participant_id=context.participant_id,
                    note_id=entry.note_id,
                    coins_allocated=entry.coins,
                )
            )
        self.db.commit()
        logger.info(
            "Marketplace allocation submitted: workspace=%s participant=%s budget=%s",
            workspace.id,
            context.participant_id,
            coin_budget,
        )
        return self.participant_allocations(context)

    def leaderboard(self, workspace_id: str) -> List[MarketplaceScore]:
        notes = self.notes.list_notes(workspace_id, visible_in=VISIBILITY_MARKETPLACE)
        return calculate_marketplace_scores(notes, self._workspace_allocations(workspace_id))

    def progress(self, workspace_id: str) -> AllocationProgress:
        return calculate_allocation_progress(
            self.workspaces.participant_ids(workspace_id),
            self._workspace_allocations(workspace_id),
        )

    def budget(self, context: ParticipantContext, workspace: Workspace) -> dict:
        coin_budget = self.workspaces.coin_budget(workspace)
        allocations = self.participant_allocations(context)
        return {
            "coin_budget": coin_budget,
            "spent": participant_spend(context.participant_id, allocations),
            "remaining": remaining_budget(context.participant_id, allocations, coin_budget),
        }


def get_marketplace_manager(db: Session = Depends(get_db)) -> MarketplaceManager:
    return MarketplaceManager(db)
