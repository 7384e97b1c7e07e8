from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.models.workspace import Workspace
from nebula.schemas.survey import (
    SurveyNoteSummary,
    SurveyQuestionCreate,
    SurveyQuestionResponse,
    SurveyResponseOut,
    SurveyResponseSubmit,
    SurveySummaryResponse,
)
from nebula.services.survey_manager import SurveyManager, get_survey_manager
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}", tags=["survey"])


@router.get("/survey/questions", response_model=List[SurveyQuestionResponse])
def list_questions(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: SurveyManager = Depends(get_survey_manager),
):
    return manager.list_questions(workspace.id)


@router.post(
    "/survey/questions",
    response_model=SurveyQuestionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_question(
    payload: SurveyQuestionCreate,
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: SurveyManager = Depends(get_survey_manager),
):
    return manager.add_question(workspace, payload.question_text, payload.order_index)


@router.post("/survey-responses", response_model=SurveyResponseOut)
async def submit_response(
    payload: SurveyResponseSubmit,
    context: ParticipantContext = Depends(get_participant_context),
    manager: SurveyManager = Depends(get_survey_manager),
):
    response = manager.submit_response(
        context, payload.question_id, payload.note_id, payload.score
    )
    await websocket_manager.publish(
        context.workspace_id,
        "survey_response_submitted",
        {"questionId": response.question_id, "noteId": response.note_id},
        participant_id=context.participant_id,
    )
    return response


@router.get("/survey/summary", response_model=SurveySummaryResponse)
def get_summary(
    workspace: Workspace = Depends(get_workspace_or_404),
    manager: SurveyManager = Depends(get_survey_manager),
):
    return SurveySummaryResponse(
        questions=[
            SurveyQuestionResponse.model_validate(question)
            for question in manager.list_questions(workspace.id)
        ],
        notes=[SurveyNoteSummary(**row) for row in manager.summary(workspace.id)],
    )
