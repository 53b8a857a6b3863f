# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the job cycle system.

Template side:  JobDefinition -> TaskTemplate (forest)
Instance side:  JobInstance   -> Task (forest)
Group side:     GroupStatusCatalog -> StatusDefinition
"""

from core.models.job_definition import JobDefinition
from core.models.task_template import TaskTemplate
from core.models.job_instance import JobInstance, parse_instance_key
from core.models.task import Task
from core.models.status_catalog import StatusDefinition, GroupStatusCatalog

__all__ = [
    # Template side
    "JobDefinition",
    "TaskTemplate",
    # Instance side
    "JobInstance",
    "parse_instance_key",
    "Task",
    # Group status catalog
    "StatusDefinition",
    "GroupStatusCatalog",
]
