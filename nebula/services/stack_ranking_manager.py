from __future__ import annotations

import logging
from typing import List, Sequence

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import VISIBILITY_RANKING, NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.database import get_db
from nebula.models.note import Note
from nebula.models.voting import Ranking
from nebula.schemas.voting import RankingEntry
from nebula.services.stack_ranking import (
    BordaScore,
    RankingProgress,
    calculate_borda_scores,
    calculate_ranking_progress,
    has_participant_completed,
    validate_ranking,
)

logger = logging.getLogger("app")


class StackRankingManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)
        self.workspaces = WorkspaceManager(db)

    def _workspace_rankings(self, workspace_id: str) -> List[Ranking]:
        return self.db.query(Ranking).filter(Ranking.workspace_id == workspace_id).all()

    def ranking_notes(self, workspace_id: str) -> List[Note]:
        return self.notes.list_notes(workspace_id, visible_in=VISIBILITY_RANKING)

    def participant_rankings(self, context: ParticipantContext) -> List[Ranking]:
        return (
            self.db.query(Ranking)
            .filter(
                Ranking.workspace_id == context.workspace_id,
                Ranking.participant_id == context.participant_id,
            )
            .order_by(Ranking.rank)
            .all()
        )

    def submit_rankings(
        self, context: ParticipantContext, entries: Sequence[RankingEntry]
    ) -> List[Ranking]:
        """Replace the participant's full ranking in one transaction."""
        notes = self.ranking_notes(context.workspace_id)
        result = validate_ranking([note.id for note in notes], entries)
        if not result.valid:
            raise HTTPException(status_code=400, detail=result.error)

        self.db.query(Ranking).filter(
            Ranking.workspace_id == context.workspace_id,
            Ranking.participant_id == context.participant_id,
        ).delete(synchronize_session=False)
        for entry in entries:
            self.db.add(
                Ranking(
                    workspace_id=context.workspace_id,
                    participant_id=context.participant_id,
                    note_id=entry.note_id,
                    rank=entry.rank,
                )
            )
        self.db.commit()
        logger.info(
            "Ranking submitted: workspace=%s participant=%s notes=%s",
            context.workspace_id,
            context.participant_id,
            len(entries),
        )
        return self.participant_rankings(context)

    def leaderboard(self, workspace_id: str) -> List[BordaScore]:
        notes = self.ranking_notes(workspace_id)
        return calculate_borda_scores(notes, self._workspace_rankings(workspace_id))

    def progress(self, workspace_id: str) -> RankingProgress:
        notes = self.ranking_notes(workspace_id)
        return calculate_ranking_progress(
            self.workspaces.participant_ids(workspace_id),
            self._workspace_rankings(workspace_id),
            len(notes),
        )

    def has_completed(self, context: ParticipantContext) -> bool:
        notes = self.ranking_notes(context.workspace_id)
        return has_participant_completed(
            context.participant_id, self.participant_rankings(context), len(notes)
        )


def get_stack_ranking_manager(db: Session = Depends(get_db)) -> StackRankingManager:
    return StackRankingManager(db)
