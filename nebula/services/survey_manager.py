from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext
from nebula.data.notes_manager import NotesManager
from nebula.database import get_db
from nebula.models.survey import SurveyQuestion, SurveyResponse
from nebula.models.workspace import Workspace

SCORE_MIN = 1
SCORE_MAX = 5


class SurveyManager:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.notes = NotesManager(db)

    def list_questions(self, workspace_id: str) -> List[SurveyQuestion]:
        return (
            self.db.query(SurveyQuestion)
            .filter(SurveyQuestion.workspace_id == workspace_id)
            .order_by(SurveyQuestion.order_index, SurveyQuestion.id)
            .all()
        )

    def add_question(
        self, workspace: Workspace, question_text: str, order_index: Optional[int] = None
    ) -> SurveyQuestion:
        text = question_text.strip()
        if not text:
            raise HTTPException(status_code=400, detail="Question text cannot be empty.")
        if order_index is None:
            order_index = len(self.list_questions(workspace.id))
        question = SurveyQuestion(
            workspace_id=workspace.id, question_text=text, order_index=order_index
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def submit_response(
        self,
        context: ParticipantContext,
        question_id: str,
        note_id: str,
        score: int,
    ) -> SurveyResponse:
        """Upsert the participant's score for one (question, idea)."""
        if score < SCORE_MIN or score > SCORE_MAX:
            raise HTTPException(
                status_code=400, detail=f"Score must be between {SCORE_MIN} and {SCORE_MAX}"
            )
        question = self.db.get(SurveyQuestion, question_id)
        if question is None or question.workspace_id != context.workspace_id:
            raise HTTPException(status_code=404, detail="Survey question not found.")
        note = self.notes.get_note(context.workspace_id, note_id)

        response = (
            self.db.query(SurveyResponse)
            .filter(
                SurveyResponse.participant_id == context.participant_id,
                SurveyResponse.question_id == question.id,
                SurveyResponse.note_id == note.id,
            )
            .first()
        )
        if response is None:
            response = SurveyResponse(
                workspace_id=context.workspace_id,
                participant_id=context.participant_id,
                question_id=question.id,
                note_id=note.id,
            )
            self.db.add(response)
        response.score = score
        self.db.commit()
        self.db.refresh(response)
        return response

    def responses(self, workspace_id: str) -> List[SurveyResponse]:
        return (
            self.db.query(SurveyResponse)
            .filter(SurveyResponse.workspace_id == workspace_id)
            .all()
        )

    def summary(self, workspace_id: str) -> List[Dict[str, object]]:
        """Mean score per idea across every question and participant, best first."""
        totals: Dict[str, int] = defaultdict(int)
        counts: Dict[str, int] = defaultdict(int)
        for response in self.responses(workspace_id):
            totals[response.note_id] += response.score
            counts[response.note_id] += 1

        rows = [
            {
                "note_id": note.id,
                "content": note.content,
                "average_score": (totals[note.id] / counts[note.id]) if counts[note.id] else 0.0,
                "response_count": counts[note.id],
            }
            for note in self.notes.list_notes(workspace_id)
        ]
        rows.sort(key=lambda row: -row["average_score"])
        return rows


def get_survey_manager(db: Session = Depends(get_db)) -> SurveyManager:
    return SurveyManager(db)
