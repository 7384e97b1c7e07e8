from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

PairwiseScope = Literal["all", "within_categories"]


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(default=None, max_length=120)


class OrganizationResponse(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None

    model_config = {"from_attributes": True}


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    purpose: Optional[str] = None
    organization_id: Optional[str] = None
    status: str = "draft"
    pairwise_scope: PairwiseScope = "all"
    marketplace_coin_budget: Optional[int] = Field(default=None, gt=0)
    ai_results_enabled: bool = True


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    purpose: Optional[str] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=40)
    pairwise_scope: Optional[PairwiseScope] = None
    marketplace_coin_budget: Optional[int] = Field(default=None, gt=0)
    ai_results_enabled: Optional[bool] = None


class WorkspaceResponse(BaseModel):
    id: str
    name: str
    purpose: Optional[str] = None
    organization_id: Optional[str] = None
    code: str
    status: str
    pairwise_scope: str
    marketplace_coin_budget: Optional[int] = None
    ai_results_enabled: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ParticipantJoin(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=120)
    is_guest: bool = True


class ParticipantResponse(BaseModel):
    id: str
    workspace_id: str
    display_name: str
    is_guest: bool
    is_online: bool = False
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class CategoryResponse(BaseModel):
    id: str
    workspace_id: str
    name: str
    color: Optional[str] = None

    model_config = {"from_attributes": True}


class ModuleConfigure(BaseModel):
    module_type: str
    enabled: bool = True
    order_index: Optional[int] = Field(default=None, ge=0)
    config: Dict[str, Any] = Field(default_factory=dict)


class ModuleUpdate(BaseModel):
    enabled: Optional[bool] = None
    order_index: Optional[int] = Field(default=None, ge=0)
    config: Optional[Dict[str, Any]] = None


class ModuleResponse(BaseModel):
    id: str
    workspace_id: str
    module_type: str
    enabled: bool
    order_index: int
    config: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class ModuleRunResponse(BaseModel):
    id: str
    workspace_module_id: str
    workspace_id: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ModuleCatalogEntry(BaseModel):
    module_type: str
    label: str
    default_config: Dict[str, Any] = Field(default_factory=dict)


class WorkspaceOverview(BaseModel):
    workspace: WorkspaceResponse
    participants: List[ParticipantResponse] = Field(default_factory=list)
    categories: List[CategoryResponse] = Field(default_factory=list)
    modules: List[ModuleResponse] = Field(default_factory=list)
