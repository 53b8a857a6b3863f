# ============================================================================
# TASK TEMPLATE MODEL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core model - Node of a job definition's template forest
# PURPOSE: Reusable task with a day offset from the instantiation anchor
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: TaskTemplate
# DEPENDENCIES: pydantic
# ============================================================================
"""
Task Template Model

A TaskTemplate is one node in a JobDefinition's template forest.

Key concept:
- TaskTemplate = TEMPLATE (title, offset, default assignees)
- Task = INSTANCE (concrete due date, status, assignees)

Invariants:
- depth == parent.depth + 1, or 0 for roots
- depth <= 2 (three levels: root, child, grandchild)
- a template with children cannot be deleted directly

Maps to: jobcycle.task_templates
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from core.contracts import MAX_DEPTH, Priority
from core.models.assignees import normalize_assignee_ids


class TaskTemplate(BaseModel):
    """Reusable, dated-by-offset node within a job definition."""

    template_id: str = Field(..., max_length=64)
    definition_id: str = Field(..., max_length=64)
    parent_template_id: Optional[str] = Field(default=None, max_length=64)
    depth: int = Field(default=0, ge=0, le=MAX_DEPTH)

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    relative_days: int = Field(
        default=0,
        description="Signed day offset from the instantiation anchor date",
    )

    default_assignee_role: Optional[str] = Field(default=None, max_length=100)
    default_assignee_ids: List[str] = Field(default_factory=list)
    default_priority: Optional[Priority] = None

    sort_order: int = 0

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": False}

    @field_validator("default_assignee_ids", mode="before")
    @classmethod
    def coerce_assignees(cls, v: Any) -> List[str]:
        return normalize_assignee_ids(v)

    @computed_field
    @property
    def default_assignee_id(self) -> Optional[str]:
        """Single-assignee compatibility view (first of default_assignee_ids)."""
        return self.default_assignee_ids[0] if self.default_assignee_ids else None

    @computed_field
    @property
    def is_root(self) -> bool:
        return self.parent_template_id is None


__all__ = ["TaskTemplate"]
