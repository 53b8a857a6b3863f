# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Database access layer
# PURPOSE: CRUD operations for job cycle entities
# CREATED: 18 OCT 2026
# ============================================================================
"""
Repositories Module

Provides database access for job cycle entities.
Uses psycopg3 async with connection pooling. Write methods accept an
open connection so services can group writes in one transaction.

Usage:
    from repositories import get_pool, DefinitionRepository

    pool = await get_pool()
    definitions = DefinitionRepository(pool)
    definition = await definitions.get(definition_id)
"""

from .database import get_pool, init_pool, close_pool, use_connection, transaction
from .definition_repo import DefinitionRepository
from .template_repo import TemplateRepository
from .instance_repo import InstanceRepository
from .task_repo import TaskRepository
from .status_repo import StatusRepository
from .schema import deploy_schema

__all__ = [
    "get_pool",
    "init_pool",
    "close_pool",
    "use_connection",
    "transaction",
    "DefinitionRepository",
    "TemplateRepository",
    "InstanceRepository",
    "TaskRepository",
    "StatusRepository",
    "deploy_schema",
]
