from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    func,
)

from ..database import Base


def _uuid_str() -> str:
    return str(uuid4())


class CohortResult(Base):
    __tablename__ = "cohort_results"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    summary = Column(Text, nullable=False)
    key_themes = Column(JSON, default=list, nullable=False)
    top_ideas = Column(JSON, default=list, nullable=False)
    insights = Column(Text, nullable=False)
    recommendations = Column(Text, nullable=True)
    result_metadata = Column(JSON, default=dict, nullable=False)
    generated_by = Column(String(120), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PersonalizedResult(Base):
    __tablename__ = "personalized_results"

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
    cohort_result_id = Column(
        String(36),
        ForeignKey("cohort_results.id", ondelete="SET NULL"),
        nullable=True,
    )
    personal_summary = Column(Text, nullable=False)
    alignment_score = Column(Integer, nullable=False)
    top_contributions = Column(JSON, default=list, nullable=False)
    insights = Column(Text, nullable=False)
    recommendations = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AiUsageLog(Base):
    __tablename__ = "ai_usage_log"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    organization_id = Column(String(36), nullable=True, index=True)
    operation = Column(String(60), nullable=False)
    model = Column(String(80), nullable=False)
    prompt_tokens = Column(Integer, nullable=False, default=0)
    completion_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
