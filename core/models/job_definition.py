# ============================================================================
# JOB DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core model - Reusable recurring job
# PURPOSE: Named unit of recurring work that owns a task template forest
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobDefinition
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Definition Model

A JobDefinition is the reusable blueprint for a recurring body of work
(e.g. "Entrance ceremony preparation"). It owns zero or more
TaskTemplates, which are expanded into a JobInstance + Tasks by the
instantiation engine.

Key concept:
- JobDefinition + TaskTemplate = TEMPLATE (what to do, offsets in days)
- JobInstance + Task = INSTANCE (dated, assignable work for one run)

Maps to: jobcycle.job_definitions
"""

import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

PREFIX_PATTERN = re.compile(r"^[A-Z]+$")


class JobDefinition(BaseModel):
    """
    Reusable job definition.

    Deleting a definition cascades to its templates; instances and tasks
    created from it survive with their reference nulled out.
    """
    definition_id: str = Field(..., max_length=64)
    group_id: str = Field(..., max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    prefix: Optional[str] = Field(
        default=None,
        max_length=16,
        description="Upper-case key prefix used for instance display keys (PREFIX-N)",
    )
    category: Optional[str] = Field(default=None, max_length=100)

    # Timing hints (informational only)
    typical_start_month: Optional[int] = Field(default=None, ge=1, le=12)
    typical_start_week: Optional[int] = Field(default=None, ge=1, le=5)
    typical_duration_days: Optional[int] = Field(default=None, ge=0)

    owner_role: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": False}

    @field_validator("prefix", mode="before")
    @classmethod
    def normalize_prefix(cls, v):
        """Prefixes are stored upper-case; blank means no prefix."""
        if v is None:
            return None
        v = str(v).strip().upper()
        if not v:
            return None
        if not PREFIX_PATTERN.match(v):
            raise ValueError(f"prefix must contain letters only, got '{v}'")
        return v

    def deactivate(self) -> None:
        """Soft-retire the definition instead of deleting it."""
        self.is_active = False
        self.updated_at = datetime.now(timezone.utc)


__all__ = ["JobDefinition", "PREFIX_PATTERN"]
