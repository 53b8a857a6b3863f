# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core module initialization
# PURPOSE: Export core contracts and models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

from core.contracts import InstanceStatus, Priority, MAX_DEPTH
from core.models import (
    JobDefinition,
    TaskTemplate,
    JobInstance,
    Task,
    StatusDefinition,
    GroupStatusCatalog,
)

__all__ = [
    # Enums / constants
    "InstanceStatus",
    "Priority",
    "MAX_DEPTH",
    # Models
    "JobDefinition",
    "TaskTemplate",
    "JobInstance",
    "Task",
    "StatusDefinition",
    "GroupStatusCatalog",
]
