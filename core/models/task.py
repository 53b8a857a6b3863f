# ============================================================================
# TASK MODEL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core model - Node of a job instance's concrete forest
# PURPOSE: Concrete, dated, assignable unit of work
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: Task
# DEPENDENCIES: pydantic
# ============================================================================
"""
Task Model

A Task is one node of a JobInstance's task forest, or a freestanding
task owned only by its group.

Key fields:
- task_number: sequential within its instance, assigned once at creation
- status: key into the owning group's GroupStatusCatalog
- assignee_ids: authoritative assignee list (assignee_id is a view)

Invariants:
- depth == parent.depth + 1, or 0 for roots
- depth <= 2

Maps to: jobcycle.tasks
"""

from datetime import date, datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from core.contracts import MAX_DEPTH, Priority
from core.models.assignees import normalize_assignee_ids


class Task(BaseModel):
    """Concrete task within a group (and optionally a job instance)."""

    task_id: str = Field(..., max_length=64)
    group_id: str = Field(..., max_length=64)
    instance_id: Optional[str] = Field(default=None, max_length=64)
    template_id: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Originating template, nulled if the template is deleted",
    )
    parent_task_id: Optional[str] = Field(default=None, max_length=64)
    depth: int = Field(default=0, ge=0, le=MAX_DEPTH)
    task_number: Optional[int] = Field(default=None, ge=1)

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None

    status: str = Field(..., min_length=1, max_length=64)
    priority: Priority = Field(default=Priority.NORMAL)
    assignee_ids: List[str] = Field(default_factory=list)
    sort_order: int = 0

    created_by: str = Field(..., max_length=64)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": False}

    @field_validator("assignee_ids", mode="before")
    @classmethod
    def coerce_assignees(cls, v: Any) -> List[str]:
        return normalize_assignee_ids(v)

    @computed_field
    @property
    def assignee_id(self) -> Optional[str]:
        """Single-assignee compatibility view (first of assignee_ids)."""
        return self.assignee_ids[0] if self.assignee_ids else None

    @computed_field
    @property
    def is_freestanding(self) -> bool:
        return self.instance_id is None

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


__all__ = ["Task"]
