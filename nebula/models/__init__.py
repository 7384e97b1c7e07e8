# Import models so they are registered with SQLAlchemy's Base metadata
from .workspace import (
    Organization,
    Workspace,
    Participant,
    WorkspaceModule,
    WorkspaceModuleRun,
)
from .note import Category, Note
from .voting import Vote, Ranking, MarketplaceAllocation
from .positions import PriorityMatrixPosition, StaircasePosition
from .survey import SurveyQuestion, SurveyResponse
from .results import CohortResult, PersonalizedResult, AiUsageLog

__all__ = [
    "Organization",
    "Workspace",
    "Participant",
    "WorkspaceModule",
    "WorkspaceModuleRun",
    "Category",
    "Note",
    "Vote",
    "Ranking",
    "MarketplaceAllocation",
    "PriorityMatrixPosition",
    "StaircasePosition",
    "SurveyQuestion",
    "SurveyResponse",
    "CohortResult",
    "PersonalizedResult",
    "AiUsageLog",
]
