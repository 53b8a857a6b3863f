# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Business logic layer
# PURPOSE: Definition, instance and status catalog services
# CREATED: 18 OCT 2026
# ============================================================================
"""
Services Module

Business logic for the job cycle engine.
Services load forests from repositories, run the engine, and persist
the outcome in one transaction.

Usage:
    from services import JobDefinitionService

    definitions = JobDefinitionService(pool)
    outcome = await definitions.instantiate(definition_id, 2026, actor_id)
"""

from .definition_service import JobDefinitionService
from .instance_service import JobInstanceService
from .status_service import StatusCatalogService

__all__ = [
    "JobDefinitionService",
    "JobInstanceService",
    "StatusCatalogService",
]
