# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API.

Reorder requests distinguish an omitted parent (keep the current parent)
from an explicit null (move to root) via ``model_fields_set``.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from core.contracts import Priority
from core.models import JobDefinition, JobInstance, Task, TaskTemplate
from engine import ReorderChange


# ============================================================================
# DEFINITION / TEMPLATE REQUESTS
# ============================================================================

class DefinitionCreate(BaseModel):
    """Request to create a job definition."""
    group_id: str = Field(..., max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    prefix: Optional[str] = Field(None, max_length=16)
    category: Optional[str] = Field(None, max_length=100)
    typical_start_month: Optional[int] = Field(None, ge=1, le=12)
    typical_start_week: Optional[int] = Field(None, ge=1, le=5)
    typical_duration_days: Optional[int] = Field(None, ge=0)
    owner_role: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "group_id": "grp-1",
                    "name": "Entrance ceremony",
                    "prefix": "ENT",
                    "typical_start_month": 3,
                }
            ]
        }
    }


class DefinitionUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    prefix: Optional[str] = Field(None, max_length=16)
    category: Optional[str] = Field(None, max_length=100)
    typical_start_month: Optional[int] = Field(None, ge=1, le=12)
    typical_start_week: Optional[int] = Field(None, ge=1, le=5)
    typical_duration_days: Optional[int] = Field(None, ge=0)
    owner_role: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TemplateCreate(BaseModel):
    """Request to add a task template."""
    title: str = Field(..., min_length=1, max_length=500)
    parent_template_id: Optional[str] = Field(None, max_length=64)
    relative_days: int = 0
    description: Optional[str] = None
    default_assignee_role: Optional[str] = Field(None, max_length=100)
    default_assignee_ids: List[str] = Field(default_factory=list)
    default_priority: Optional[Priority] = None
    sort_order: Optional[int] = None


class TemplateUpdate(BaseModel):
    """Partial update of a template; ``parent_template_id`` moves it."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    parent_template_id: Optional[str] = Field(None, max_length=64)
    relative_days: Optional[int] = None
    description: Optional[str] = None
    default_assignee_role: Optional[str] = Field(None, max_length=100)
    default_assignee_ids: Optional[List[str]] = None
    default_assignee_id: Optional[str] = Field(None, max_length=64)
    default_priority: Optional[Priority] = None
    sort_order: Optional[int] = None


class TemplateReorder(BaseModel):
    parent_template_id: Optional[str] = Field(None, max_length=64)
    sort_order: Optional[int] = None

    def to_change(self, template_id: str) -> ReorderChange:
        fields = {"node_id": template_id, "sort_order": self.sort_order}
        if "parent_template_id" in self.model_fields_set:
            fields["parent_id"] = self.parent_template_id
        return ReorderChange(**fields)


class TemplateReorderItem(TemplateReorder):
    id: str = Field(..., max_length=64)


class TemplateReorderBulk(BaseModel):
    templates: List[TemplateReorderItem] = Field(default_factory=list)

    def to_changes(self) -> List[ReorderChange]:
        return [item.to_change(item.id) for item in self.templates]


class InstantiateRequest(BaseModel):
    """Request to instantiate a definition."""
    fiscal_year: int = Field(..., ge=1900, le=9999)
    actor_id: str = Field(..., max_length=64)
    actual_start: Optional[date] = None
    name: Optional[str] = Field(None, max_length=200)


# ============================================================================
# INSTANCE / TASK REQUESTS
# ============================================================================

class CaptureRequest(BaseModel):
    """Request to save an instance as a new job definition."""
    actor_id: str = Field(..., max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    prefix: Optional[str] = Field(None, max_length=16)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    owner_role: Optional[str] = Field(None, max_length=100)
    typical_start_month: Optional[int] = Field(None, ge=1, le=12)
    typical_start_week: Optional[int] = Field(None, ge=1, le=5)
    typical_duration_days: Optional[int] = Field(None, ge=0)


class TaskCreate(BaseModel):
    """Request to create a task."""
    group_id: str = Field(..., max_length=64)
    title: str = Field(..., min_length=1, max_length=500)
    created_by: str = Field(..., max_length=64)
    parent_task_id: Optional[str] = Field(None, max_length=64)
    instance_id: Optional[str] = Field(None, max_length=64)
    template_id: Optional[str] = Field(None, max_length=64)
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[str] = Field(None, max_length=64)
    priority: Priority = Priority.NORMAL
    assignee_ids: List[str] = Field(default_factory=list)
    sort_order: Optional[int] = None


class TaskUpdate(BaseModel):
    """Partial update of task content."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[str] = Field(None, max_length=64)
    priority: Optional[Priority] = None
    assignee_ids: Optional[List[str]] = None
    assignee_id: Optional[str] = Field(None, max_length=64)


class StatusChange(BaseModel):
    status: str = Field(..., min_length=1, max_length=64)


class PriorityChange(BaseModel):
    priority: str


class TaskReorder(BaseModel):
    parent_task_id: Optional[str] = Field(None, max_length=64)
    sort_order: Optional[int] = None

    def to_change(self, task_id: str) -> ReorderChange:
        fields = {"node_id": task_id, "sort_order": self.sort_order}
        if "parent_task_id" in self.model_fields_set:
            fields["parent_id"] = self.parent_task_id
        return ReorderChange(**fields)


class TaskReorderItem(TaskReorder):
    id: str = Field(..., max_length=64)


class TaskReorderBulk(BaseModel):
    tasks: List[TaskReorderItem] = Field(default_factory=list)

    def to_changes(self) -> List[ReorderChange]:
        return [item.to_change(item.id) for item in self.tasks]


class StatusCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., max_length=128)
    color: Optional[str] = Field(None, max_length=16)
    sort_order: Optional[int] = None
    is_done: bool = False


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class DefinitionDetail(BaseModel):
    definition: JobDefinition
    templates: List[TaskTemplate]


class InstantiateResponse(BaseModel):
    instance: JobInstance
    display_key: Optional[str] = None
    task_count: int
    tasks: List[Task]


class CaptureResponse(BaseModel):
    definition: JobDefinition
    templates: List[TaskTemplate]
    base_date: date
    instance_id: str


class ReorderResponse(BaseModel):
    success: bool = True
    updated: int


class ErrorBody(BaseModel):
    code: str
    message: str
    node_id: Optional[str] = None
