from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import NotesManager
from nebula.database import get_db
from nebula.models.voting import Vote
from nebula.models.workspace import Workspace
from nebula.services.pairwise import (
    NotePair,
    PairwiseProgress,
    PairwiseStat,
    calculate_progress,
    calculate_vote_stats,
    get_next_pair,
)

logger = logging.getLogger("app")

MESSAGE_ALL_PAIRS_VOTED = "All pairs voted"
MESSAGE_NOT_ENOUGH_NOTES = "Not enough notes to vote"


class PairwiseManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)

    def _participant_votes(self, context: ParticipantContext) -> List[Vote]:
        return (
            self.db.query(Vote)
            .filter(
                Vote.workspace_id == context.workspace_id,
                Vote.participant_id == context.participant_id,
            )
            .all()
        )

    def record_vote(
        self,
        context: ParticipantContext,
        winner_note_id: str,
        loser_note_id: str,
    ) -> Vote:
        if winner_note_id == loser_note_id:
            raise HTTPException(status_code=400, detail="Winner and loser must be different notes.")
        # Both lookups 404 when a note is outside the workspace.
        self.notes.get_note(context.workspace_id, winner_note_id)
        self.notes.get_note(context.workspace_id, loser_note_id)

        vote = Vote(
            workspace_id=context.workspace_id,
            participant_id=context.participant_id,
            winner_note_id=winner_note_id,
            loser_note_id=loser_note_id,
        )
        self.db.add(vote)
        self.db.commit()
        self.db.refresh(vote)
        logger.debug(
            "Vote recorded: workspace=%s participant=%s winner=%s loser=%s",
            context.workspace_id,
            context.participant_id,
            winner_note_id,
            loser_note_id,
        )
        return vote

    def next_pair(
        self, context: ParticipantContext, workspace: Workspace
    ) -> Tuple[Optional[NotePair], PairwiseProgress, Optional[str]]:
        notes = self.notes.list_notes(workspace.id)
        votes = self._participant_votes(context)
        scope = workspace.pairwise_scope
        pair = get_next_pair(notes, votes, scope)
        progress = calculate_progress(notes, votes, scope)
        message = None
        if pair is None:
            message = MESSAGE_ALL_PAIRS_VOTED if progress.is_complete else MESSAGE_NOT_ENOUGH_NOTES
        return pair, progress, message

    def vote_stats(self, workspace_id: str) -> List[PairwiseStat]:
        notes = self.notes.list_notes(workspace_id)
        votes = self.db.query(Vote).filter(Vote.workspace_id == workspace_id).all()
        return calculate_vote_stats(notes, votes)


def get_pairwise_manager(db: Session = Depends(get_db)) -> PairwiseManager:
    return PairwiseManager(db)
