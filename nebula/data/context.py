"""Request-scoped workspace and participant resolution.

Participant identity travels explicitly in the ``X-Participant-Id`` header and
is handed to every participant-scoped operation as a :class:`ParticipantContext`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..models.workspace import Workspace
from .workspace_manager import WorkspaceManager, get_workspace_manager

PARTICIPANT_HEADER = "X-Participant-Id"


@dataclass(frozen=True)
class ParticipantContext:
    workspace_id: str
    participant_id: str
    display_name: str


def get_workspace_or_404(
    workspace_id: str,
    manager: WorkspaceManager = Depends(get_workspace_manager),
) -> Workspace:
    return manager.require_workspace(workspace_id)


def resolve_participant_context(
    manager: WorkspaceManager, workspace: Workspace, participant_id: Optional[str]
) -> ParticipantContext:
    if not participant_id or not participant_id.strip():
        raise HTTPException(
            status_code=401,
            detail="No participant session found. Please rejoin the workspace.",
        )
    participant = manager.get_participant(participant_id.strip())
    if participant is None or participant.workspace_id != workspace.id:
        raise HTTPException(
            status_code=403, detail="Participant does not belong to this workspace."
        )
    return ParticipantContext(
        workspace_id=workspace.id,
        participant_id=participant.id,
        display_name=participant.display_name,
    )


def get_participant_context(
    workspace: Workspace = Depends(get_workspace_or_404),
    x_participant_id: Optional[str] = Header(default=None),
    manager: WorkspaceManager = Depends(get_workspace_manager),
) -> ParticipantContext:
    """Dependency provider for the calling participant's context."""
    return resolve_participant_context(manager, workspace, x_participant_id)
