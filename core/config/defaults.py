# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for hierarchy, instantiation, statuses, database
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for the template engine and its storage layer.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from core.contracts import MAX_DEPTH, Priority


@dataclass(frozen=True)
class HierarchyDefaults:
    """
    Defaults for template/task hierarchies.

    max_depth may be lowered (e.g. flat lists only) but never raised
    above the hard cap of two.
    """
    max_depth: int = MAX_DEPTH

    @classmethod
    def from_env(cls) -> "HierarchyDefaults":
        """Create from environment variables."""
        requested = int(os.getenv("HIERARCHY_MAX_DEPTH", MAX_DEPTH))
        return cls(max_depth=min(max(requested, 0), MAX_DEPTH))


@dataclass(frozen=True)
class InstantiationDefaults:
    """Defaults applied when expanding templates into tasks."""
    default_priority: str = Priority.NORMAL.value
    first_task_number: int = 1

    @classmethod
    def from_env(cls) -> "InstantiationDefaults":
        """Create from environment variables."""
        return cls(
            default_priority=Priority(
                os.getenv("DEFAULT_TASK_PRIORITY", Priority.NORMAL.value)
            ).value,
        )


@dataclass(frozen=True)
class StatusDefaults:
    """
    Default status catalog seeded into new groups.

    Tuples are (key, label, color, sort_order, is_done).
    """
    catalog: Tuple[Tuple[str, str, str, int, bool], ...] = (
        ("not_started", "Not started", "#94a3b8", 0, False),
        ("in_progress", "In progress", "#3b82f6", 1, False),
        ("completed", "Completed", "#22c55e", 2, True),
    )


@dataclass(frozen=True)
class DatabaseDefaults:
    """Defaults for the PostgreSQL connection pool."""
    schema: str = "jobcycle"
    pool_min_size: int = 2
    pool_max_size: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseDefaults":
        """Create from environment variables."""
        return cls(
            schema=os.getenv("DB_SCHEMA", "jobcycle"),
            pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", 2)),
            pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", 10)),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    hierarchy: HierarchyDefaults = field(default_factory=HierarchyDefaults)
    instantiation: InstantiationDefaults = field(default_factory=InstantiationDefaults)
    statuses: StatusDefaults = field(default_factory=StatusDefaults)
    database: DatabaseDefaults = field(default_factory=DatabaseDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            hierarchy=HierarchyDefaults.from_env(),
            instantiation=InstantiationDefaults.from_env(),
            statuses=StatusDefaults(),
            database=DatabaseDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "HierarchyDefaults",
    "InstantiationDefaults",
    "StatusDefaults",
    "DatabaseDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
