"""AI-generated cohort and personalized workshop results.

The prompt only carries data from modules enabled on the workspace. Whatever the
model returns is parsed and validated against :mod:`nebula.schemas.results`
before anything is written; a failed call or a malformed reply persists nothing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from nebula.models.results import CohortResult, PersonalizedResult
from nebula.models.workspace import Participant, Workspace
from nebula.schemas.results import CohortResultPayload, PersonalizedResultPayload
from nebula.services import module_catalog
from nebula.services.ai_usage import log_ai_usage
from nebula.services.llm_client import LLMCallError, LLMClient, parse_json_object
from nebula.services.marketplace import calculate_marketplace_scores
from nebula.services.pairwise import calculate_vote_stats
from nebula.services.score_combiner import CombinedScore
from nebula.services.stack_ranking import calculate_borda_scores
from nebula.services.workspace_snapshot import (
    WorkspaceSnapshot,
    build_module_signals,
    combined_ranking,
    load_workspace_snapshot,
)

logger = logging.getLogger("app")

LEADERBOARD_SIZE = 10
PERSONAL_TOP_CONTRIBUTIONS = 5

COHORT_SYSTEM_PROMPT = (
    "You are an expert workshop facilitator and strategic analyst. You receive the "
    "ideas a group produced together with the outcome of the prioritization "
    "activities they completed. Write a clear, evidence-based summary of the group's "
    "results. Only discuss the activities that appear in the data; do not mention or "
    "speculate about any other activity. Respond with a single JSON object."
)

PERSONALIZED_SYSTEM_PROMPT = (
    "You are an expert workshop facilitator writing a short personal debrief for one "
    "participant. Compare their ideas and choices with the group's overall outcome, "
    "recognise their specific contributions and suggest next steps. Only discuss the "
    "activities that appear in the data. Respond with a single JSON object."
)


class ResultsGenerationError(Exception):
    """Results could not be produced; nothing was stored."""


def _format_percent(value: float) -> str:
    return f"{round(value * 100)}%"


def _level(value: float) -> str:
    return "High" if value > 0.5 else "Low"


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def _pairwise_section(snapshot: WorkspaceSnapshot) -> List[str]:
    stats = calculate_vote_stats(snapshot.notes, snapshot.votes)
    lines = [
        f"## {module_catalog.MODULE_LABELS[module_catalog.PAIRWISE_VOTING]}",
        f"Total votes cast: {len(snapshot.votes)}",
    ]
    for stat in stats[:LEADERBOARD_SIZE]:
        lines.append(
            f"- {stat.note.content} ({stat.wins} wins, {stat.losses} losses, "
            f"win rate {_format_percent(stat.win_rate)})"
        )
    return lines


def _ranking_section(snapshot: WorkspaceSnapshot) -> List[str]:
    scores = calculate_borda_scores(snapshot.ranking_notes, snapshot.rankings)
    rankers = {row.participant_id for row in snapshot.rankings}
    lines = [
        f"## {module_catalog.MODULE_LABELS[module_catalog.STACK_RANKING]} (Borda count)",
        f"Participants who submitted a ranking: {len(rankers)}",
    ]
    for score in scores[:LEADERBOARD_SIZE]:
        lines.append(
            f"- {score.note.content} (Borda {score.total_score}, "
            f"average rank {score.average_rank:.2f})"
        )
    return lines


def _marketplace_section(snapshot: WorkspaceSnapshot) -> List[str]:
    scores = calculate_marketplace_scores(snapshot.marketplace_notes, snapshot.allocations)
    lines = [
        f"## {module_catalog.MODULE_LABELS[module_catalog.MARKETPLACE]} (coin allocation)",
        f"Total allocations: {len(snapshot.allocations)}",
    ]
    for score in scores[:LEADERBOARD_SIZE]:
        lines.append(
            f"- {score.note.content} ({score.total_coins} coins from "
            f"{score.participant_count} participants)"
        )
    return lines


def _matrix_section(snapshot: WorkspaceSnapshot) -> List[str]:
    config = snapshot.module_configs.get(module_catalog.PRIORITY_MATRIX, {})
    x_label = config.get("x_axis_label", "Impact")
    y_label = config.get("y_axis_label", "Effort")
    notes = {note.id: note for note in snapshot.notes}
    lines = [
        f"## {module_catalog.MODULE_LABELS[module_catalog.PRIORITY_MATRIX]} "
        f"({x_label} vs {y_label})"
    ]
    for position in sorted(snapshot.matrix_positions, key=lambda row: -row.x_coord):
        note = notes.get(position.note_id)
        if note is None:
            continue
        lines.append(
            f"- {note.content}: {x_label} {_format_percent(position.x_coord)} "
            f"({_level(position.x_coord)}), {y_label} {_format_percent(position.y_coord)} "
            f"({_level(position.y_coord)})"
        )
    return lines


def _staircase_section(snapshot: WorkspaceSnapshot) -> List[str]:
    config = snapshot.module_configs.get(module_catalog.STAIRCASE, {})
    max_score = config.get("max_score", 10)
    notes = {note.id: note for note in snapshot.notes}
    lines = [f"## {module_catalog.MODULE_LABELS[module_catalog.STAIRCASE]} rating"]
    for position in sorted(snapshot.staircase_positions, key=lambda row: -row.score):
        note = notes.get(position.note_id)
        if note is None:
            continue
        lines.append(
            f"- {note.content}: {_format_number(position.score)}/{_format_number(max_score)}"
        )
    return lines


def _survey_section(snapshot: WorkspaceSnapshot) -> List[str]:
    totals: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    for response in snapshot.survey_responses:
        totals[response.note_id] += response.score
        counts[response.note_id] += 1
    lines = [
        f"## {module_catalog.MODULE_LABELS[module_catalog.SURVEY]} (1-5 scale)",
        f"Total responses: {len(snapshot.survey_responses)}",
    ]
    rated = [note for note in snapshot.notes if counts[note.id]]
    rated.sort(key=lambda note: -(totals[note.id] / counts[note.id]))
    for note in rated[:LEADERBOARD_SIZE]:
        lines.append(
            f"- {note.content}: average {totals[note.id] / counts[note.id]:.2f} "
            f"({counts[note.id]} responses)"
        )
    return lines


_SECTION_BUILDERS = (
    (module_catalog.PAIRWISE_VOTING, _pairwise_section),
    (module_catalog.STACK_RANKING, _ranking_section),
    (module_catalog.MARKETPLACE, _marketplace_section),
    (module_catalog.PRIORITY_MATRIX, _matrix_section),
    (module_catalog.STAIRCASE, _staircase_section),
    (module_catalog.SURVEY, _survey_section),
)


def _module_sections(snapshot: WorkspaceSnapshot) -> List[str]:
    lines: List[str] = []
    for module_type, builder in _SECTION_BUILDERS:
        if snapshot.is_enabled(module_type):
            lines.append("")
            lines.extend(builder(snapshot))
    return lines


def _top_idea_fields(snapshot: WorkspaceSnapshot) -> str:
    fields = [
        '"noteId": string',
        '"content": string',
        '"overallRank": number',
        '"category": string (optional)',
    ]
    if snapshot.is_enabled(module_catalog.PAIRWISE_VOTING):
        fields.append('"pairwiseWins": number (optional)')
    if snapshot.is_enabled(module_catalog.STACK_RANKING):
        fields.append('"bordaScore": number (optional)')
    if snapshot.is_enabled(module_catalog.MARKETPLACE):
        fields.append('"marketplaceCoins": number (optional)')
    return ", ".join(fields)


def build_cohort_prompt(snapshot: WorkspaceSnapshot, ranking: List[CombinedScore]) -> str:
    workspace = snapshot.workspace
    enabled_labels = [
        module_catalog.MODULE_LABELS[module_type]
        for module_type in module_catalog.MODULE_TYPES
        if snapshot.is_enabled(module_type)
    ]
    lines = [
        f"# Workshop: {workspace.name}",
        f"Purpose: {workspace.purpose or 'Not specified'}",
        f"Participants: {len(snapshot.participants)}",
        f"Total ideas: {len(snapshot.notes)}",
        f"Activities completed: {', '.join(enabled_labels) if enabled_labels else 'Idea generation only'}",
    ]
    lines.extend(_module_sections(snapshot))

    lines.append("")
    lines.append("## All Ideas Ranked by Combined Score")
    for index, item in enumerate(ranking, start=1):
        lines.append(
            f"#{index} [{snapshot.category_name(item.note.category_id)}] "
            f"{item.note.content} (id: {item.note_id}, score {item.score:.3f})"
        )

    lines.append("")
    lines.append("## Ideas by Category")
    grouped: Dict[str, List[str]] = defaultdict(list)
    for note in snapshot.notes:
        grouped[snapshot.category_name(note.category_id)].append(note.content)
    for category_name in sorted(grouped):
        lines.append(f"### {category_name} ({len(grouped[category_name])} ideas)")
        lines.extend(f"- {content}" for content in grouped[category_name])

    lines.append("")
    lines.append(
        "Return JSON with: \"summary\" (string), \"keyThemes\" (array of strings), "
        f"\"topIdeas\" (array of objects with {_top_idea_fields(snapshot)}), "
        "\"insights\" (string) and optionally \"recommendations\" (string). "
        "Use the noteId values given above."
    )
    return "\n".join(lines)


def build_personalized_prompt(
    snapshot: WorkspaceSnapshot,
    participant: Participant,
    ranking: List[CombinedScore],
    cohort_result: Optional[CohortResult] = None,
) -> str:
    own_notes = [note for note in snapshot.notes if note.participant_id == participant.id]
    lines = [
        f"# Workshop: {snapshot.workspace.name}",
        f"Participant: {participant.display_name}",
        f"Ideas contributed: {len(own_notes)} of {len(snapshot.notes)}",
    ]

    by_category: Dict[str, List[Any]] = defaultdict(list)
    for note in own_notes:
        by_category[snapshot.category_name(note.category_id)].append(note)
    for category_name in sorted(by_category):
        lines.append(f"## {category_name} ({len(by_category[category_name])} ideas)")
        lines.extend(f"- {note.content} (id: {note.id})" for note in by_category[category_name])

    lines.append("")
    lines.append("## Participation")
    if snapshot.is_enabled(module_catalog.PAIRWISE_VOTING):
        votes_cast = sum(1 for vote in snapshot.votes if vote.participant_id == participant.id)
        lines.append(f"Pairwise votes cast: {votes_cast}")
    if snapshot.is_enabled(module_catalog.STACK_RANKING):
        ranked = any(row.participant_id == participant.id for row in snapshot.rankings)
        lines.append(f"Submitted a stack ranking: {'yes' if ranked else 'no'}")
    if snapshot.is_enabled(module_catalog.MARKETPLACE):
        allocated = any(row.participant_id == participant.id for row in snapshot.allocations)
        lines.append(f"Allocated marketplace coins: {'yes' if allocated else 'no'}")

    own_ids = {note.id for note in own_notes}
    if snapshot.is_enabled(module_catalog.PAIRWISE_VOTING):
        own_stats = [
            stat for stat in calculate_vote_stats(snapshot.notes, snapshot.votes)
            if stat.note_id in own_ids
        ]
        own_stats.sort(key=lambda stat: (-stat.win_rate, -stat.wins))
        lines.append("")
        lines.append("## Your top ideas by pairwise win rate")
        for stat in own_stats[:PERSONAL_TOP_CONTRIBUTIONS]:
            lines.append(
                f"- {stat.note.content} (id: {stat.note_id}, win rate "
                f"{_format_percent(stat.win_rate)}, {stat.wins} wins)"
            )

    positions = {item.note_id: index for index, item in enumerate(ranking, start=1)}
    lines.append("")
    lines.append(f"## Where your ideas placed overall (out of {len(ranking)})")
    for note in sorted(own_notes, key=lambda note: positions.get(note.id, len(ranking) + 1)):
        lines.append(f"- #{positions.get(note.id, '-')} {note.content} (id: {note.id})")

    if cohort_result is not None:
        lines.append("")
        lines.append("## Group outcome")
        lines.append(f"Summary: {cohort_result.summary}")
        if cohort_result.key_themes:
            lines.append(f"Key themes: {', '.join(cohort_result.key_themes)}")

    lines.append("")
    lines.append(
        "Return JSON with: \"personalSummary\" (string), \"alignmentScore\" (number 0-100, "
        "how closely this participant's ideas and choices match the group outcome), "
        "\"topContributions\" (array of objects with \"noteId\", \"content\", \"impact\"), "
        "\"insights\" (string) and optionally \"recommendations\" (string)."
    )
    return "\n".join(lines)


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors()[:5]:
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_cohort_payload(content: str) -> CohortResultPayload:
    """Strictly validate a cohort reply; raises ResultsGenerationError on any mismatch."""
    try:
        return CohortResultPayload.model_validate(parse_json_object(content))
    except LLMCallError as exc:
        raise ResultsGenerationError(str(exc)) from exc
    except ValidationError as exc:
        raise ResultsGenerationError(
            f"Invalid response format from AI: {_validation_summary(exc)}"
        ) from exc


def parse_personalized_payload(content: str) -> PersonalizedResultPayload:
    try:
        return PersonalizedResultPayload.model_validate(parse_json_object(content))
    except LLMCallError as exc:
        raise ResultsGenerationError(str(exc)) from exc
    except ValidationError as exc:
        raise ResultsGenerationError(
            f"Invalid response format from AI: {_validation_summary(exc)}"
        ) from exc


class ResultsGenerator:
    def __init__(self, db: Session, llm_client: LLMClient) -> None:
        self.db = db
        self.llm = llm_client

    def _check_enabled(self, workspace: Workspace) -> None:
        if not workspace.ai_results_enabled:
            raise HTTPException(
                status_code=403, detail="AI results are disabled for this workspace."
            )

    def _load(self, workspace: Workspace) -> WorkspaceSnapshot:
        snapshot = load_workspace_snapshot(self.db, workspace)
        if not snapshot.notes:
            raise HTTPException(status_code=400, detail="No notes found for this workspace")
        return snapshot

    async def _complete(self, workspace: Workspace, operation: str, system: str, user: str) -> str:
        try:
            response = await self.llm.complete_json(system, user)
        except LLMCallError as exc:
            raise ResultsGenerationError(str(exc)) from exc
        log_ai_usage(
            self.db,
            operation=operation,
            model=response.model,
            usage=response.usage,
            workspace_id=workspace.id,
            organization_id=workspace.organization_id,
        )
        return response.content

    def latest_cohort_result(self, workspace_id: str) -> Optional[CohortResult]:
        return (
            self.db.query(CohortResult)
            .filter(CohortResult.workspace_id == workspace_id)
            .order_by(CohortResult.created_at.desc(), CohortResult.id.desc())
            .first()
        )

    def latest_personalized_result(
        self, workspace_id: str, participant_id: str
    ) -> Optional[PersonalizedResult]:
        return (
            self.db.query(PersonalizedResult)
            .filter(
                PersonalizedResult.workspace_id == workspace_id,
                PersonalizedResult.participant_id == participant_id,
            )
            .order_by(PersonalizedResult.created_at.desc(), PersonalizedResult.id.desc())
            .first()
        )

    async def generate_cohort_results(
        self, workspace: Workspace, generated_by: Optional[str] = None
    ) -> CohortResult:
        self._check_enabled(workspace)
        snapshot = self._load(workspace)
        ranking = combined_ranking(snapshot)
        prompt = build_cohort_prompt(snapshot, ranking)

        content = await self._complete(workspace, "cohort_results", COHORT_SYSTEM_PROMPT, prompt)
        payload = parse_cohort_payload(content)

        result = CohortResult(
            workspace_id=workspace.id,
            summary=payload.summary,
            key_themes=list(payload.key_themes),
            top_ideas=[
                idea.model_dump(by_alias=True, exclude_none=True) for idea in payload.top_ideas
            ],
            insights=payload.insights,
            recommendations=payload.recommendations,
            result_metadata={
                "totalNotes": len(snapshot.notes),
                "totalVotes": len(snapshot.votes),
                "totalRankings": len(snapshot.rankings),
                "totalAllocations": len(snapshot.allocations),
                "enabledModules": list(snapshot.enabled_modules),
                "activeModules": [signal.kind for signal in build_module_signals(snapshot)],
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
            generated_by=generated_by,
        )
        self.db.add(result)
        self.db.commit()
        self.db.refresh(result)
        logger.info("Cohort results generated for workspace %s (%s)", workspace.id, result.id)
        return result

    async def generate_personalized_result(
        self,
        workspace: Workspace,
        participant_id: str,
        cohort_result: Optional[CohortResult] = None,
    ) -> PersonalizedResult:
        self._check_enabled(workspace)
        participant = self.db.get(Participant, participant_id)
        if participant is None or participant.workspace_id != workspace.id:
            raise HTTPException(status_code=404, detail="Participant not found.")
        snapshot = self._load(workspace)
        if cohort_result is None:
            cohort_result = self.latest_cohort_result(workspace.id)
        prompt = build_personalized_prompt(
            snapshot, participant, combined_ranking(snapshot), cohort_result
        )

        content = await self._complete(
            workspace, "personalized_results", PERSONALIZED_SYSTEM_PROMPT, prompt
        )
        payload = parse_personalized_payload(content)

        result = PersonalizedResult(
            workspace_id=workspace.id,
            participant_id=participant.id,
            cohort_result_id=cohort_result.id if cohort_result is not None else None,
            personal_summary=payload.personal_summary,
            alignment_score=int(round(payload.alignment_score)),
            top_contributions=[
                contribution.model_dump(by_alias=True)
                for contribution in payload.top_contributions
            ],
            insights=payload.insights,
            recommendations=payload.recommendations,
        )
        self.db.add(result)
        self.db.commit()
        self.db.refresh(result)
        return result

    async def generate_all_personalized_results(
        self, workspace: Workspace, cohort_result: Optional[CohortResult] = None
    ) -> Tuple[List[str], List[str]]:
        """Generate for every participant; one participant failing does not stop the rest."""
        self._check_enabled(workspace)
        if cohort_result is None:
            cohort_result = self.latest_cohort_result(workspace.id)
        participant_ids = [
            participant.id
            for participant in self.db.query(Participant)
            .filter(Participant.workspace_id == workspace.id)
            .order_by(Participant.joined_at, Participant.id)
            .all()
        ]

        succeeded: List[str] = []
        failed: List[str] = []
        for participant_id in participant_ids:
            try:
                await self.generate_personalized_result(workspace, participant_id, cohort_result)
            except Exception:  # noqa: BLE001
                self.db.rollback()
                logger.exception(
                    "Failed to generate personalized results for participant %s in workspace %s",
                    participant_id,
                    workspace.id,
                )
                failed.append(participant_id)
                continue
            succeeded.append(participant_id)
        logger.info(
            "Personalized results batch for workspace %s: %s succeeded, %s failed",
            workspace.id,
            len(succeeded),
            len(failed),
        )
        return succeeded, failed
