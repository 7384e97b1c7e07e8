from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.loader import get_marketplace_settings, get_workspace_code_settings
from ..database import get_db
from ..models.note import Category, Note
from ..models.workspace import (
    Organization,
    Participant,
    Workspace,
    WorkspaceModule,
    WorkspaceModuleRun,
)
from ..schemas.workspace import (
    CategoryCreate,
    CategoryUpdate,
    ModuleConfigure,
    ModuleUpdate,
    WorkspaceCreate,
    WorkspaceUpdate,
)
from ..services import module_catalog

_WORKSPACE_CODE_PATTERN = re.compile(r"^(\d{4})-?(\d{4})$")
_CLOSED_STATUS_PREFIXES = ("closed", "archived")

logger = logging.getLogger("app")


def normalize_workspace_code(identifier: str) -> Optional[str]:
    """Return the canonical ``nnnn-nnnn`` form, or None when this is not a join code."""
    match = _WORKSPACE_CODE_PATTERN.match((identifier or "").strip())
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def is_closed(status: str) -> bool:
    value = (status or "").strip().lower()
    return value.startswith(_CLOSED_STATUS_PREFIXES)


class WorkspaceManager:
    """Workspaces, their participants, categories and module configuration."""

    def __init__(self, db: Session):
        self.db = db

    # Organizations / workspaces

    def create_organization(self, name: str, slug: Optional[str] = None) -> Organization:
        organization = Organization(name=name.strip(), slug=(slug or None))
        self.db.add(organization)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Database error creating organization: %s", exc)
            raise HTTPException(
                status_code=400, detail="Could not create organization (slug in use?)."
            ) from exc
        self.db.refresh(organization)
        return organization

    def _generate_code(self) -> str:
        attempts = get_workspace_code_settings()["max_attempts"]
        for _ in range(attempts):
            candidate = f"{secrets.randbelow(9000) + 1000}-{secrets.randbelow(10000):04d}"
            exists = self.db.query(Workspace.id).filter(Workspace.code == candidate).first()
            if not exists:
                return candidate
        raise HTTPException(
            status_code=500,
            detail="Failed to generate unique workspace code after multiple attempts",
        )

    def create_workspace(self, payload: WorkspaceCreate) -> Workspace:
        if payload.organization_id:
            organization = self.db.get(Organization, payload.organization_id)
            if organization is None:
                raise HTTPException(status_code=404, detail="Organization not found.")

        workspace = Workspace(
            name=payload.name.strip(),
            purpose=payload.purpose,
            organization_id=payload.organization_id,
            code=self._generate_code(),
            status=payload.status,
            pairwise_scope=payload.pairwise_scope,
            marketplace_coin_budget=payload.marketplace_coin_budget,
            ai_results_enabled=payload.ai_results_enabled,
        )
        self.db.add(workspace)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Database error creating workspace: %s", exc)
            raise HTTPException(
                status_code=500,
                detail="Could not create workspace due to a database error.",
            ) from exc
        self.db.refresh(workspace)
        logger.info("Created workspace %s (code %s)", workspace.id, workspace.code)
        return workspace

    def get_workspace(self, identifier: str) -> Optional[Workspace]:
        """Look up by id, or by join code with or without the hyphen."""
        code = normalize_workspace_code(identifier)
        if code is not None:
            return self.db.query(Workspace).filter(Workspace.code == code).first()
        return self.db.get(Workspace, identifier)

    def require_workspace(self, identifier: str) -> Workspace:
        workspace = self.get_workspace(identifier)
        if workspace is None:
            raise HTTPException(status_code=404, detail="Workspace not found")
        return workspace

    def update_workspace(self, workspace: Workspace, payload: WorkspaceUpdate) -> Workspace:
        for field_name, value in payload.model_dump(exclude_unset=True).items():
            if field_name == "name" and value is not None:
                value = value.strip()
            setattr(workspace, field_name, value)
        self.db.commit()
        self.db.refresh(workspace)
        return workspace

    def coin_budget(self, workspace: Workspace) -> int:
        if workspace.marketplace_coin_budget:
            return int(workspace.marketplace_coin_budget)
        return get_marketplace_settings()["coin_budget"]

    # Participants

    def add_participant(
        self, workspace: Workspace, display_name: str, *, is_guest: bool = True
    ) -> Participant:
        name = display_name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Display name is required.")
        participant = Participant(
            workspace_id=workspace.id,
            display_name=name,
            is_guest=is_guest,
        )
        self.db.add(participant)
        self.db.commit()
        self.db.refresh(participant)
        return participant

    def list_participants(self, workspace_id: str) -> List[Participant]:
        return (
            self.db.query(Participant)
            .filter(Participant.workspace_id == workspace_id)
            .order_by(Participant.joined_at, Participant.id)
            .all()
        )

    def participant_ids(self, workspace_id: str) -> List[str]:
        return [participant.id for participant in self.list_participants(workspace_id)]

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self.db.get(Participant, participant_id)

    def set_participant_online(self, participant_id: str, is_online: bool) -> None:
        participant = self.get_participant(participant_id)
        if participant is None:
            return
        participant.is_online = is_online
        self.db.commit()

    # Categories

    def list_categories(self, workspace_id: str) -> List[Category]:
        return (
            self.db.query(Category)
            .filter(Category.workspace_id == workspace_id)
            .order_by(Category.name)
            .all()
        )

    def find_category_by_name(self, workspace_id: str, name: str) -> Optional[Category]:
        return (
            self.db.query(Category)
            .filter(
                Category.workspace_id == workspace_id,
                func.lower(Category.name) == name.strip().lower(),
            )
            .first()
        )

    def get_category(self, workspace_id: str, category_id: str) -> Category:
        category = self.db.get(Category, category_id)
        if category is None or category.workspace_id != workspace_id:
            raise HTTPException(status_code=404, detail="Category not found.")
        return category

    def create_category(self, workspace: Workspace, payload: CategoryCreate) -> Category:
        if self.find_category_by_name(workspace.id, payload.name):
            raise HTTPException(status_code=400, detail="A category with this name already exists.")
        category = Category(
            workspace_id=workspace.id,
            name=payload.name.strip(),
            color=payload.color,
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def update_category(
        self, workspace: Workspace, category_id: str, payload: CategoryUpdate
    ) -> Category:
        category = self.get_category(workspace.id, category_id)
        if payload.name is not None:
            existing = self.find_category_by_name(workspace.id, payload.name)
            if existing is not None and existing.id != category.id:
                raise HTTPException(
                    status_code=400, detail="A category with this name already exists."
                )
            category.name = payload.name.strip()
        if payload.color is not None:
            category.color = payload.color
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete_category(self, workspace: Workspace, category_id: str) -> None:
        category = self.get_category(workspace.id, category_id)
        self.db.query(Note).filter(Note.category_id == category.id).update(
            {Note.category_id: None, Note.is_ai_category: False},
            synchronize_session=False,
        )
        self.db.delete(category)
        self.db.commit()

    # Modules

    def list_modules(self, workspace_id: str) -> List[WorkspaceModule]:
        return (
            self.db.query(WorkspaceModule)
            .filter(WorkspaceModule.workspace_id == workspace_id)
            .order_by(WorkspaceModule.order_index, WorkspaceModule.module_type)
            .all()
        )

    def get_module(self, workspace_id: str, module_type: str) -> Optional[WorkspaceModule]:
        return (
            self.db.query(WorkspaceModule)
            .filter(
                WorkspaceModule.workspace_id == workspace_id,
                WorkspaceModule.module_type == module_type,
            )
            .first()
        )

    def enabled_module_types(self, workspace_id: str) -> List[str]:
        return [module.module_type for module in self.list_modules(workspace_id) if module.enabled]

    def module_config(self, workspace_id: str, module_type: str) -> Dict[str, Any]:
        module = self.get_module(workspace_id, module_type)
        return module_catalog.resolve_module_config(
            module_type, module.config if module is not None else None
        )

    def configure_module(self, workspace: Workspace, payload: ModuleConfigure) -> WorkspaceModule:
        """Create or replace the module row for ``payload.module_type``."""
        if not module_catalog.is_known_module(payload.module_type):
            raise HTTPException(
                status_code=400, detail=f"Unknown module type: {payload.module_type}"
            )
        module = self.get_module(workspace.id, payload.module_type)
        if module is None:
            order_index = payload.order_index
            if order_index is None:
                order_index = len(self.list_modules(workspace.id))
            module = WorkspaceModule(
                workspace_id=workspace.id,
                module_type=payload.module_type,
                order_index=order_index,
            )
            self.db.add(module)
        elif payload.order_index is not None:
            module.order_index = payload.order_index
        module.enabled = payload.enabled
        module.config = module_catalog.resolve_module_config(payload.module_type, payload.config)
        self.db.commit()
        self.db.refresh(module)
        return module

    def update_module(
        self, workspace: Workspace, module_id: str, payload: ModuleUpdate
    ) -> WorkspaceModule:
        module = self.db.get(WorkspaceModule, module_id)
        if module is None or module.workspace_id != workspace.id:
            raise HTTPException(status_code=404, detail="Module not found.")
        if payload.enabled is not None:
            module.enabled = payload.enabled
        if payload.order_index is not None:
            module.order_index = payload.order_index
        if payload.config is not None:
            merged = dict(module.config or {})
            merged.update(payload.config)
            module.config = module_catalog.resolve_module_config(module.module_type, merged)
        self.db.commit()
        self.db.refresh(module)
        return module

    def start_module_run(self, workspace: Workspace, module_id: str) -> WorkspaceModuleRun:
        module = self.db.get(WorkspaceModule, module_id)
        if module is None or module.workspace_id != workspace.id:
            raise HTTPException(status_code=404, detail="Module not found.")
        run = WorkspaceModuleRun(
            workspace_module_id=module.id,
            workspace_id=workspace.id,
            status="active",
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        return run

    def complete_module_run(self, workspace: Workspace, run_id: str) -> WorkspaceModuleRun:
        run = self.db.get(WorkspaceModuleRun, run_id)
        if run is None or run.workspace_id != workspace.id:
            raise HTTPException(status_code=404, detail="Module run not found.")
        run.status = "completed"
        run.completed_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(run)
        return run

    def require_module_run(self, workspace_id: str, run_id: Optional[str]) -> Optional[str]:
        if run_id is None:
            return None
        run = self.db.get(WorkspaceModuleRun, run_id)
        if run is None or run.workspace_id != workspace_id:
            raise HTTPException(status_code=404, detail="Module run not found.")
        return run.id


def get_workspace_manager(db: Session = Depends(get_db)) -> WorkspaceManager:
    """Dependency provider for WorkspaceManager."""
    return WorkspaceManager(db=db)
