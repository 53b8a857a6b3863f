# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Foundation - Core enums shared by models, engine and API
# PURPOSE: Define lifecycle/priority enums and hierarchy constants
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: InstanceStatus, Priority, MAX_DEPTH
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the job cycle system.

These values cross every boundary:
- SQL (PostgreSQL columns)
- HTTP (request/response bodies)
- Python (engine and services)

Task status is deliberately NOT an enum here. Each group owns a custom
status catalog (see core.models.status_catalog) and a task's status is a
key into that catalog.
"""

from enum import Enum


# Hierarchy is hard-capped at three levels: root (0), child (1), grandchild (2).
MAX_DEPTH = 2


# ============================================================================
# STATUS ENUMS
# ============================================================================

class InstanceStatus(str, Enum):
    """
    Job instance lifecycle states.

    State transitions:
        NOT_STARTED -> IN_PROGRESS -> COMPLETED
    """
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self == InstanceStatus.COMPLETED


class Priority(str, Enum):
    """Task priority. NORMAL is the default for generated tasks."""
    URGENT = "urgent"
    IMPORTANT = "important"
    NORMAL = "normal"
    NONE = "none"


__all__ = ["InstanceStatus", "Priority", "MAX_DEPTH"]
