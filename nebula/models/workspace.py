from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


def _uuid_str() -> str:
    return str(uuid4())


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    name = Column(String(200), nullable=False)
    slug = Column(String(120), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    workspaces = relationship("Workspace", back_populates="organization")


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = Column(String(200), nullable=False)
    purpose = Column(Text, nullable=True)
    code = Column(String(9), nullable=False, unique=True, index=True)
    status = Column(String(40), nullable=False, default="draft")
    pairwise_scope = Column(String(32), nullable=False, default="all")
    marketplace_coin_budget = Column(Integer, nullable=True)
    ai_results_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    organization = relationship("Organization", back_populates="workspaces")
    participants = relationship(
        "Participant",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="Participant.joined_at",
    )
    modules = relationship(
        "WorkspaceModule",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceModule.order_index",
    )


class Participant(Base):
    __tablename__ = "participants"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    display_name = Column(String(120), nullable=False)
    is_guest = Column(Boolean, nullable=False, default=True)
    is_online = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    workspace = relationship("Workspace", back_populates="participants")


class WorkspaceModule(Base):
    __tablename__ = "workspace_modules"
    __table_args__ = (
        UniqueConstraint("workspace_id", "module_type", name="uq_workspace_module_type"),
    )

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_type = Column(String(40), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    order_index = Column(Integer, nullable=False, default=0)
    config = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="modules")
    runs = relationship(
        "WorkspaceModuleRun",
        back_populates="module",
        cascade="all, delete-orphan",
    )


class WorkspaceModuleRun(Base):
    """One live run of a module; matrix and staircase boards are keyed by it."""

    __tablename__ = "workspace_module_runs"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    workspace_module_id = Column(
        String(36),
        ForeignKey("workspace_modules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    workspace_id = Column(
        String(36),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(20), nullable=False, default="active")
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    module = relationship("WorkspaceModule", back_populates="runs")
