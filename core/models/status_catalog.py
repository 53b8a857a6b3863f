# ============================================================================
# GROUP STATUS CATALOG MODEL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core model - Per-group custom task statuses
# PURPOSE: Replace a fixed task status enum with a group-owned catalog
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: StatusDefinition, GroupStatusCatalog
# DEPENDENCIES: pydantic
# ============================================================================
"""
Group Status Catalog

Every group defines its own ordered set of task statuses. A task's
``status`` is a key into its group's catalog.

The "initial" status (used for freshly instantiated tasks) is the
lowest ``sort_order`` status that is not marked done.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class StatusDefinition(BaseModel):
    """One entry in a group's status catalog."""
    group_id: Optional[str] = Field(default=None, max_length=64)
    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., max_length=128)
    color: str = Field(default="#94a3b8", max_length=16)
    sort_order: int = 0
    is_done: bool = False


class GroupStatusCatalog(BaseModel):
    """
    Ordered status catalog for one group.

    Keys are unique within a group.
    """
    group_id: str = Field(..., max_length=64)
    statuses: List[StatusDefinition] = Field(default_factory=list)

    @field_validator("statuses")
    @classmethod
    def keys_unique(cls, v: List[StatusDefinition]) -> List[StatusDefinition]:
        seen = set()
        for status in v:
            if status.key in seen:
                raise ValueError(f"Duplicate status key '{status.key}'")
            seen.add(status.key)
        return v

    @classmethod
    def from_tuples(
        cls,
        group_id: str,
        rows: List[Tuple[str, str, str, int, bool]],
    ) -> "GroupStatusCatalog":
        """Build from (key, label, color, sort_order, is_done) tuples."""
        return cls(
            group_id=group_id,
            statuses=[
                StatusDefinition(
                    group_id=group_id,
                    key=key,
                    label=label,
                    color=color,
                    sort_order=sort_order,
                    is_done=is_done,
                )
                for key, label, color, sort_order, is_done in rows
            ],
        )

    def ordered(self) -> List[StatusDefinition]:
        """Statuses by sort_order (stable for ties)."""
        return sorted(self.statuses, key=lambda s: s.sort_order)

    def has_status(self, key: Optional[str]) -> bool:
        return key is not None and any(s.key == key for s in self.statuses)

    def get(self, key: str) -> Optional[StatusDefinition]:
        for status in self.statuses:
            if status.key == key:
                return status
        return None

    def initial_status(self) -> Optional[str]:
        """Lowest-order non-done status key, or None if the catalog has none."""
        for status in self.ordered():
            if not status.is_done:
                return status.key
        return None

    def done_keys(self) -> List[str]:
        return [s.key for s in self.ordered() if s.is_done]


__all__ = ["StatusDefinition", "GroupStatusCatalog"]
