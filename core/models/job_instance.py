# ============================================================================
# JOB INSTANCE MODEL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core model - One concrete run of a job
# PURPOSE: Fiscal-year scoped execution that owns a task forest
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobInstance, parse_instance_key
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Instance Model

A JobInstance is one dated run of a JobDefinition (or a freestanding run
with no definition). Instances are numbered per group; together with the
definition's prefix the number forms a display key such as ``TEST-3``.

Lifecycle:
    NOT_STARTED -> IN_PROGRESS -> COMPLETED

Maps to: jobcycle.job_instances
"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from core.contracts import InstanceStatus

INSTANCE_KEY_PATTERN = re.compile(r"^([A-Z]+)-(\d+)$")


class JobInstance(BaseModel):
    """Runtime record of one execution of a job."""

    instance_id: str = Field(..., max_length=64)
    definition_id: Optional[str] = Field(default=None, max_length=64)
    group_id: str = Field(..., max_length=64)
    name: Optional[str] = Field(default=None, max_length=200)

    instance_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Sequential per group, never reused",
    )
    fiscal_year: int = Field(..., ge=1900, le=9999)

    actual_start: Optional[date] = None
    actual_end: Optional[date] = None
    status: InstanceStatus = Field(default=InstanceStatus.NOT_STARTED)

    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": False}

    def display_key(self, prefix: Optional[str]) -> Optional[str]:
        """Human-readable key (PREFIX-N), or None without prefix or number."""
        if not prefix or self.instance_number is None:
            return None
        return f"{prefix}-{self.instance_number}"

    def link_definition(self, definition_id: str) -> None:
        """Back-reference a definition (used when capturing as template)."""
        self.definition_id = definition_id
        self.updated_at = datetime.now(timezone.utc)


def parse_instance_key(key: str) -> Tuple[str, int]:
    """
    Split a display key into (prefix, instance_number).

    Raises:
        ValueError: key is not of the form PREFIX-NUMBER
    """
    match = INSTANCE_KEY_PATTERN.match(key or "")
    if not match:
        raise ValueError(
            f"Invalid instance key format '{key}'. Expected: PREFIX-NUMBER"
        )
    return match.group(1), int(match.group(2))


__all__ = ["JobInstance", "parse_instance_key", "INSTANCE_KEY_PATTERN"]
