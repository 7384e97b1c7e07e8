from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from ..database import Base


def _uuid_str() -> str:
    return str(uuid4())


class Vote(Base):
    """A single pairwise duel outcome. Repeated votes on a pair are kept as-is."""

    __tablename__ = "votes"
    __table_args__ = (
        CheckConstraint("winner_note_id <> loser_note_id", name="ck_vote_distinct_notes"),
    )

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    winner_note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    loser_note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Ranking(Base):
    __tablename__ = "rankings"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "participant_id", "note_id", name="uq_ranking_participant_note"
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    rank = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MarketplaceAllocation(Base):
    __tablename__ = "marketplace_allocations"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "participant_id", "note_id", name="uq_allocation_participant_note"
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(
        String(36),
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    coins_allocated = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
