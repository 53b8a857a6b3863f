# ============================================================================
# STATUS CATALOG SERVICE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Domain service - Per-group task status catalogs
# PURPOSE: Read, extend, shrink and seed a group's status catalog
# CREATED: 18 OCT 2026
# ============================================================================
"""
StatusCatalogService

A group's catalog decides which status keys its tasks may carry. New
groups are seeded with the default catalog from StatusDefaults.
"""

from typing import Optional

from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults
from core.logging import ComponentType, get_logger, log_context
from core.models import GroupStatusCatalog, StatusDefinition
from engine import EngineError, ErrorCode, Violation
from repositories import StatusRepository
from repositories.database import transaction

logger = get_logger(__name__, ComponentType.SERVICE)


class StatusCatalogService:
    """Business rules for group status catalogs."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool
        self.status_repo = StatusRepository(pool)

    async def get_catalog(self, group_id: str) -> GroupStatusCatalog:
        return await self.status_repo.get_catalog(group_id)

    async def add_status(
        self,
        group_id: str,
        key: str,
        label: str,
        color: Optional[str] = None,
        sort_order: Optional[int] = None,
        is_done: bool = False,
    ) -> StatusDefinition:
        """
        Append a status to the catalog (after the last one unless sort_order given).

        Raises:
            ValueError: Key already exists or invalid fields
        """
        with log_context(group_id=group_id):
            async with transaction(self.pool) as conn:
                catalog = await self.status_repo.get_catalog(group_id, conn=conn)
                if catalog.has_status(key):
                    raise ValueError(f"Status '{key}' already exists in group {group_id}")

                if sort_order is None:
                    sort_order = max((s.sort_order for s in catalog.statuses), default=-1) + 1
                status = StatusDefinition(
                    group_id=group_id,
                    key=key,
                    label=label,
                    sort_order=sort_order,
                    is_done=is_done,
                    **({"color": color} if color else {}),
                )
                await self.status_repo.create(status, conn=conn)
            return status

    async def remove_status(self, group_id: str, key: str) -> None:
        """
        Remove a status no task uses any more.

        Raises:
            KeyError: Status not in the catalog
            EngineError: STATUS_IN_USE while tasks still reference the key
        """
        with log_context(group_id=group_id):
            async with transaction(self.pool) as conn:
                catalog = await self.status_repo.get_catalog(group_id, conn=conn)
                if not catalog.has_status(key):
                    raise KeyError(f"Status '{key}' not found in group {group_id}")

                in_use = await self.status_repo.count_tasks_using(group_id, key, conn=conn)
                if in_use:
                    logger.warning(f"Refusing to remove status {key}: {in_use} tasks use it")
                    raise EngineError(
                        Violation(
                            ErrorCode.STATUS_IN_USE,
                            f"Status '{key}' is used by {in_use} tasks",
                        )
                    )
                await self.status_repo.delete(group_id, key, conn=conn)
            logger.info(f"Removed status {key}")

    async def seed_defaults(self, group_id: str) -> GroupStatusCatalog:
        """Insert the default catalog, keeping any keys the group already has."""
        defaults = GroupStatusCatalog.from_tuples(group_id, list(get_defaults().statuses.catalog))
        async with transaction(self.pool) as conn:
            await self.status_repo.create_many(defaults.statuses, conn=conn)
            catalog = await self.status_repo.get_catalog(group_id, conn=conn)
        logger.info(f"Seeded default statuses for group {group_id}")
        return catalog


__all__ = ["StatusCatalogService"]
