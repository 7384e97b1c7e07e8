"""
Data access layer: workspaces, participants, categories, modules and ideas.
"""

from .workspace_manager import WorkspaceManager
from .notes_manager import NotesManager

__all__ = ["WorkspaceManager", "NotesManager"]
