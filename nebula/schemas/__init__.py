from .workspace import WorkspaceCreate, WorkspaceResponse, ParticipantResponse
from .note import NoteCreate, NoteResponse
from .results import CohortResultPayload, PersonalizedResultPayload

__all__ = [
    "WorkspaceCreate",
    "WorkspaceResponse",
    "ParticipantResponse",
    "NoteCreate",
    "NoteResponse",
    "CohortResultPayload",
    "PersonalizedResultPayload",
]
