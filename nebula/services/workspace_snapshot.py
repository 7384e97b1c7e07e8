"""Point-in-time read of everything results generation needs for one workspace.

Rows are read one table at a time with no enclosing snapshot transaction, so a
concurrent write may show up in some collections and not others.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from nebula.data.notes_manager import NotesManager
from nebula.data.workspace_manager import WorkspaceManager
from nebula.models.note import Category, Note
from nebula.models.positions import PriorityMatrixPosition, StaircasePosition
from nebula.models.survey import SurveyResponse
from nebula.models.voting import MarketplaceAllocation, Ranking, Vote
from nebula.models.workspace import Participant, Workspace
from nebula.services import module_catalog
from nebula.services.score_combiner import (
    CombinedScore,
    ModuleSignal,
    combine_scores,
    marketplace_signal,
    matrix_signal,
    pairwise_signal,
    ranking_signal,
    staircase_signal,
    survey_signal,
)


@dataclass
class WorkspaceSnapshot:
    workspace: Workspace
    notes: List[Note]
    participants: List[Participant]
    categories: Dict[str, Category]
    enabled_modules: List[str]
    module_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    votes: List[Vote] = field(default_factory=list)
    rankings: List[Ranking] = field(default_factory=list)
    allocations: List[MarketplaceAllocation] = field(default_factory=list)
    matrix_positions: List[PriorityMatrixPosition] = field(default_factory=list)
    staircase_positions: List[StaircasePosition] = field(default_factory=list)
    survey_responses: List[SurveyResponse] = field(default_factory=list)

    def is_enabled(self, module_type: str) -> bool:
        return module_type in self.enabled_modules

    @property
    def ranking_notes(self) -> List[Note]:
        return [note for note in self.notes if note.visible_in_ranking]

    @property
    def marketplace_notes(self) -> List[Note]:
        return [note for note in self.notes if note.visible_in_marketplace]

    def category_name(self, category_id: Optional[str]) -> str:
        category = self.categories.get(category_id) if category_id else None
        return category.name if category is not None else "Uncategorized"


def _workspace_rows(db: Session, model, workspace_id: str) -> list:
    return db.query(model).filter(model.workspace_id == workspace_id).all()


def load_workspace_snapshot(db: Session, workspace: Workspace) -> WorkspaceSnapshot:
    workspaces = WorkspaceManager(db)
    enabled = workspaces.enabled_module_types(workspace.id)
    snapshot = WorkspaceSnapshot(
        workspace=workspace,
        notes=NotesManager(db).list_notes(workspace.id),
        participants=workspaces.list_participants(workspace.id),
        categories={
            category.id: category for category in workspaces.list_categories(workspace.id)
        },
        enabled_modules=enabled,
        module_configs={
            module_type: workspaces.module_config(workspace.id, module_type)
            for module_type in enabled
        },
    )
    # Only enabled modules are read; a disabled module's rows never reach scoring.
    if snapshot.is_enabled(module_catalog.PAIRWISE_VOTING):
        snapshot.votes = _workspace_rows(db, Vote, workspace.id)
    if snapshot.is_enabled(module_catalog.STACK_RANKING):
        snapshot.rankings = _workspace_rows(db, Ranking, workspace.id)
    if snapshot.is_enabled(module_catalog.MARKETPLACE):
        snapshot.allocations = _workspace_rows(db, MarketplaceAllocation, workspace.id)
    if snapshot.is_enabled(module_catalog.PRIORITY_MATRIX):
        snapshot.matrix_positions = _workspace_rows(db, PriorityMatrixPosition, workspace.id)
    if snapshot.is_enabled(module_catalog.STAIRCASE):
        snapshot.staircase_positions = _workspace_rows(db, StaircasePosition, workspace.id)
    if snapshot.is_enabled(module_catalog.SURVEY):
        snapshot.survey_responses = _workspace_rows(db, SurveyResponse, workspace.id)
    return snapshot


def build_module_signals(snapshot: WorkspaceSnapshot) -> List[ModuleSignal]:
    """One signal per enabled module that has at least one data point."""
    staircase_max = snapshot.module_configs.get(module_catalog.STAIRCASE, {}).get(
        "max_score", module_catalog.default_module_config(module_catalog.STAIRCASE)["max_score"]
    )
    candidates = [
        pairwise_signal(snapshot.notes, snapshot.votes),
        ranking_signal(snapshot.ranking_notes, snapshot.rankings),
        marketplace_signal(snapshot.marketplace_notes, snapshot.allocations),
        matrix_signal(snapshot.matrix_positions),
        staircase_signal(snapshot.staircase_positions, staircase_max),
        survey_signal(snapshot.survey_responses),
    ]
    return [signal for signal in candidates if signal is not None]


def combined_ranking(snapshot: WorkspaceSnapshot) -> List[CombinedScore]:
    return combine_scores(snapshot.notes, build_module_signals(snapshot))
