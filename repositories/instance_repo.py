# ============================================================================
# JOB INSTANCE REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - JobInstance CRUD operations
# PURPOSE: Database access for job_instances table
# CREATED: 18 OCT 2026
# ============================================================================
"""
JobInstance Repository

CRUD operations for job instances, the per-group instance number
sequence, and display-key lookup (PREFIX-N via the owning definition).

Instance numbers:
    next_instance_number() advances a per-group counter row
    (group_counters) and must run inside the caller's transaction after
    lock_group_numbers(); the transaction-level advisory lock serializes
    concurrent instantiations in the same group until commit.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.contracts import InstanceStatus
from core.models import JobInstance
from .database import (
    TABLE_GROUP_COUNTERS,
    TABLE_JOB_DEFINITIONS,
    TABLE_JOB_INSTANCES,
    use_connection,
)

logger = logging.getLogger(__name__)

INSTANCE_NUMBER_LOCK_PREFIX = "jobcycle:instance_number:"


def group_lock_id(group_id: str) -> int:
    """Signed int64 advisory lock key for a group's instance numbers."""
    h = hashlib.sha256(f"{INSTANCE_NUMBER_LOCK_PREFIX}{group_id}".encode()).digest()[:8]
    return int.from_bytes(h, byteorder="big", signed=True)


class InstanceRepository:
    """Repository for JobInstance entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(
        self,
        instance: JobInstance,
        conn: Optional[AsyncConnection] = None,
    ) -> JobInstance:
        """Insert a new job instance."""
        async with use_connection(self.pool, conn) as c:
            await c.execute(
                sql.SQL("""
                    INSERT INTO {} (
                        instance_id, definition_id, group_id, name,
                        instance_number, fiscal_year, actual_start, actual_end,
                        status, created_by, created_at, updated_at
                    ) VALUES (
                        %(instance_id)s, %(definition_id)s, %(group_id)s, %(name)s,
                        %(instance_number)s, %(fiscal_year)s, %(actual_start)s, %(actual_end)s,
                        %(status)s, %(created_by)s, %(created_at)s, %(updated_at)s
                    )
                """).format(TABLE_JOB_INSTANCES),
                {
                    "instance_id": instance.instance_id,
                    "definition_id": instance.definition_id,
                    "group_id": instance.group_id,
                    "name": instance.name,
                    "instance_number": instance.instance_number,
                    "fiscal_year": instance.fiscal_year,
                    "actual_start": instance.actual_start,
                    "actual_end": instance.actual_end,
                    "status": instance.status.value,
                    "created_by": instance.created_by,
                    "created_at": instance.created_at,
                    "updated_at": instance.updated_at,
                },
            )
        logger.info(
            f"Created instance {instance.instance_id} "
            f"(group={instance.group_id}, number={instance.instance_number})"
        )
        return instance

    async def get(
        self,
        instance_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> Optional[JobInstance]:
        """Get an instance by ID."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE instance_id = %s").format(
                        TABLE_JOB_INSTANCES
                    ),
                    (instance_id,),
                )
                row = await cur.fetchone()
        return self._row_to_model(row) if row else None

    async def get_by_key(
        self,
        group_id: str,
        prefix: str,
        instance_number: int,
    ) -> Optional[JobInstance]:
        """Resolve a PREFIX-N display key within a group."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                    SELECT i.* FROM {} i
                    JOIN {} d ON d.definition_id = i.definition_id
                    WHERE i.group_id = %s AND d.prefix = %s AND i.instance_number = %s
                    LIMIT 1
                """).format(TABLE_JOB_INSTANCES, TABLE_JOB_DEFINITIONS),
                (group_id, prefix, instance_number),
            )
            row = await result.fetchone()
            return self._row_to_model(row) if row else None

    async def list_by_group(
        self,
        group_id: str,
        fiscal_year: Optional[int] = None,
        limit: int = 100,
    ) -> List[JobInstance]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            if fiscal_year is None:
                result = await conn.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE group_id = %s "
                        "ORDER BY instance_number DESC NULLS LAST LIMIT %s"
                    ).format(TABLE_JOB_INSTANCES),
                    (group_id, limit),
                )
            else:
                result = await conn.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE group_id = %s AND fiscal_year = %s "
                        "ORDER BY instance_number DESC NULLS LAST LIMIT %s"
                    ).format(TABLE_JOB_INSTANCES),
                    (group_id, fiscal_year, limit),
                )
            rows = await result.fetchall()
            return [self._row_to_model(row) for row in rows]

    async def lock_group_numbers(self, group_id: str, conn: AsyncConnection) -> None:
        """Take the group's transaction-level instance-number lock."""
        await conn.execute("SELECT pg_advisory_xact_lock(%s)", (group_lock_id(group_id),))
        logger.debug(f"Acquired instance-number lock for group {group_id}")

    async def next_instance_number(self, group_id: str, conn: AsyncConnection) -> int:
        """
        Advance the group's counter and return the new number.

        The counter row is created on first use, seeded past any instance
        already stored for the group. Numbers are never handed out twice,
        even after the highest-numbered instance is deleted.
        """
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL("""
                    INSERT INTO {counters} AS c (group_id, last_instance_number)
                    VALUES (
                        %(group_id)s,
                        (SELECT COALESCE(MAX(instance_number), 0) + 1
                         FROM {instances} WHERE group_id = %(group_id)s)
                    )
                    ON CONFLICT (group_id) DO UPDATE
                        SET last_instance_number = c.last_instance_number + 1
                    RETURNING last_instance_number AS next_number
                """).format(counters=TABLE_GROUP_COUNTERS, instances=TABLE_JOB_INSTANCES),
                {"group_id": group_id},
            )
            row = await cur.fetchone()
        return row["next_number"]

    async def link_definition(
        self,
        instance_id: str,
        definition_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Point an instance at a (newly captured) definition."""
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL(
                    "UPDATE {} SET definition_id = %s, updated_at = %s WHERE instance_id = %s"
                ).format(TABLE_JOB_INSTANCES),
                (definition_id, datetime.now(timezone.utc), instance_id),
            )
            return result.rowcount > 0

    def _row_to_model(self, row: Dict[str, Any]) -> JobInstance:
        """Convert a database row to a JobInstance instance."""
        return JobInstance(
            instance_id=row["instance_id"],
            definition_id=row.get("definition_id"),
            group_id=row["group_id"],
            name=row.get("name"),
            instance_number=row.get("instance_number"),
            fiscal_year=row["fiscal_year"],
            actual_start=row.get("actual_start"),
            actual_end=row.get("actual_end"),
            status=InstanceStatus(row.get("status") or InstanceStatus.NOT_STARTED.value),
            created_by=row.get("created_by"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at") or row["created_at"],
        )
