from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from nebula.data.context import ParticipantContext, get_participant_context, get_workspace_or_404
from nebula.database import get_db
from nebula.models.workspace import Workspace
from nebula.schemas.results import (
    BatchGenerationResponse,
    CohortGenerateRequest,
    CohortResultResponse,
    PersonalizedResultResponse,
    PublicCohortResultResponse,
)
from nebula.services.llm_client import LLMCallError, LLMClient, get_llm_client
from nebula.services.results_generator import ResultsGenerationError, ResultsGenerator
from nebula.utils.websocket_manager import websocket_manager


router = APIRouter(prefix="/api/workspaces/{workspace_id}/results", tags=["results"])
logger = logging.getLogger("app")


def get_results_generator(
    db: Session = Depends(get_db),
    llm_client: LLMClient = Depends(get_llm_client),
) -> ResultsGenerator:
    return ResultsGenerator(db, llm_client)


def _generation_failed(workspace_id: str, exc: Exception) -> HTTPException:
    logger.warning("Results generation failed for workspace %s: %s", workspace_id, exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.post(
    "/cohort",
    response_model=CohortResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_cohort_results(
    payload: Optional[CohortGenerateRequest] = Body(default=None),
    workspace: Workspace = Depends(get_workspace_or_404),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    generated_by = payload.generated_by if payload else None
    try:
        result = await generator.generate_cohort_results(workspace, generated_by)
    except (LLMCallError, ResultsGenerationError) as exc:
        raise _generation_failed(workspace.id, exc) from exc
    await websocket_manager.publish(
        workspace.id, "results_generated", {"kind": "cohort", "resultId": result.id}
    )
    return result


@router.get("/cohort", response_model=CohortResultResponse)
def get_cohort_results(
    workspace: Workspace = Depends(get_workspace_or_404),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    result = generator.latest_cohort_result(workspace.id)
    if result is None:
        raise HTTPException(status_code=404, detail="No results have been generated yet.")
    return result


@router.get("/public", response_model=PublicCohortResultResponse)
def get_public_results(
    workspace: Workspace = Depends(get_workspace_or_404),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    result = generator.latest_cohort_result(workspace.id)
    if result is None:
        raise HTTPException(status_code=404, detail="No results have been generated yet.")
    return result


@router.post(
    "/personalized",
    response_model=PersonalizedResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_personalized_result(
    workspace: Workspace = Depends(get_workspace_or_404),
    context: ParticipantContext = Depends(get_participant_context),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    try:
        result = await generator.generate_personalized_result(workspace, context.participant_id)
    except (LLMCallError, ResultsGenerationError) as exc:
        raise _generation_failed(workspace.id, exc) from exc
    await websocket_manager.publish(
        workspace.id,
        "results_generated",
        {"kind": "personalized", "resultId": result.id},
        participant_id=context.participant_id,
    )
    return result


@router.get("/personalized", response_model=PersonalizedResultResponse)
def get_personalized_result(
    context: ParticipantContext = Depends(get_participant_context),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    result = generator.latest_personalized_result(context.workspace_id, context.participant_id)
    if result is None:
        raise HTTPException(status_code=404, detail="No personalized results yet.")
    return result


@router.post("/personalized/generate-all", response_model=BatchGenerationResponse)
async def generate_all_personalized_results(
    workspace: Workspace = Depends(get_workspace_or_404),
    generator: ResultsGenerator = Depends(get_results_generator),
):
    cohort_result = generator.latest_cohort_result(workspace.id)
    succeeded, failed = await generator.generate_all_personalized_results(workspace, cohort_result)
    if succeeded:
        await websocket_manager.publish(
            workspace.id,
            "results_generated",
            {"kind": "personalized", "participantIds": succeeded},
        )
    return BatchGenerationResponse(
        cohort_result_id=cohort_result.id if cohort_result is not None else None,
        succeeded=succeeded,
        failed=failed,
    )
