# ============================================================================
# GROUP STATUS REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Per-group status catalog persistence
# PURPOSE: Database access for group_statuses table
# CREATED: 18 OCT 2026
# ============================================================================
"""
Group Status Repository

Reads and writes the per-group task status catalog.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.models import GroupStatusCatalog, StatusDefinition
from .database import TABLE_GROUP_STATUSES, TABLE_TASKS, use_connection

logger = logging.getLogger(__name__)


class StatusRepository:
    """Repository for StatusDefinition rows."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def get_catalog(
        self,
        group_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> GroupStatusCatalog:
        """Catalog of ``group_id`` (empty when the group has no statuses yet)."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE group_id = %s ORDER BY sort_order, key"
                    ).format(TABLE_GROUP_STATUSES),
                    (group_id,),
                )
                rows = await cur.fetchall()
        return GroupStatusCatalog(
            group_id=group_id,
            statuses=[self._row_to_model(row) for row in rows],
        )

    async def create(
        self,
        status: StatusDefinition,
        conn: Optional[AsyncConnection] = None,
    ) -> StatusDefinition:
        """Insert one status definition."""
        async with use_connection(self.pool, conn) as c:
            await c.execute(
                sql.SQL("""
                    INSERT INTO {} (group_id, key, label, color, sort_order, is_done)
                    VALUES (%(group_id)s, %(key)s, %(label)s, %(color)s, %(sort_order)s, %(is_done)s)
                """).format(TABLE_GROUP_STATUSES),
                status.model_dump(),
            )
        logger.info(f"Created status {status.key} for group {status.group_id}")
        return status

    async def create_many(
        self,
        statuses: Iterable[StatusDefinition],
        conn: Optional[AsyncConnection] = None,
    ) -> int:
        """Insert statuses, skipping keys the group already has."""
        statuses = list(statuses)
        if not statuses:
            return 0
        async with use_connection(self.pool, conn) as c:
            async with c.cursor() as cur:
                await cur.executemany(
                    sql.SQL("""
                        INSERT INTO {} (group_id, key, label, color, sort_order, is_done)
                        VALUES (%(group_id)s, %(key)s, %(label)s, %(color)s, %(sort_order)s, %(is_done)s)
                        ON CONFLICT (group_id, key) DO NOTHING
                    """).format(TABLE_GROUP_STATUSES),
                    [s.model_dump() for s in statuses],
                )
        return len(statuses)

    async def delete(
        self,
        group_id: str,
        key: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("DELETE FROM {} WHERE group_id = %s AND key = %s").format(
                    TABLE_GROUP_STATUSES
                ),
                (group_id, key),
            )
            return result.rowcount > 0

    async def count_tasks_using(
        self,
        group_id: str,
        key: str,
        conn: Optional[AsyncConnection] = None,
    ) -> int:
        """Number of the group's tasks currently in status ``key``."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        "SELECT COUNT(*) AS count FROM {} WHERE group_id = %s AND status = %s"
                    ).format(TABLE_TASKS),
                    (group_id, key),
                )
                row = await cur.fetchone()
        return row["count"]

    def _row_to_model(self, row: Dict[str, Any]) -> StatusDefinition:
        return StatusDefinition(
            group_id=row["group_id"],
            key=row["key"],
            label=row["label"],
            color=row.get("color") or "#94a3b8",
            sort_order=row.get("sort_order", 0),
            is_done=bool(row.get("is_done")),
        )
