from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    func,
)

from ..database import Base


def _uuid_str() -> str:
    return str(uuid4())


class PriorityMatrixPosition(Base):
    """Shared 2x2 board placement; one row per (idea, module run)."""

    __tablename__ = "priority_matrix_positions"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_run_id = Column(
        String(36),
        ForeignKey("workspace_module_runs.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
    )
    x_coord = Column(Float, nullable=False)
    y_coord = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class StaircasePosition(Base):
    __tablename__ = "staircase_positions"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_run_id = Column(
        String(36),
        ForeignKey("workspace_module_runs.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
    )
    score = Column(Float, nullable=False)
    slot_offset = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
