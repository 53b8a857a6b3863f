# ============================================================================
# JOB DEFINITION REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - JobDefinition CRUD operations
# PURPOSE: Database access for job_definitions table
# CREATED: 18 OCT 2026
# ============================================================================
"""
JobDefinition Repository

CRUD operations for job definitions.
All SQL uses psycopg sql.SQL composition for injection safety.
Deleting a definition cascades to its templates (ON DELETE CASCADE).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.models import JobDefinition
from .database import TABLE_JOB_DEFINITIONS, use_connection

logger = logging.getLogger(__name__)

_COLUMNS = (
    "definition_id", "group_id", "name", "prefix", "category",
    "typical_start_month", "typical_start_week", "typical_duration_days",
    "owner_role", "description", "is_active", "created_at", "updated_at",
)


class DefinitionRepository:
    """Repository for JobDefinition entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(
        self,
        definition: JobDefinition,
        conn: Optional[AsyncConnection] = None,
    ) -> JobDefinition:
        """Insert a new job definition."""
        async with use_connection(self.pool, conn) as c:
            await c.execute(
                sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
                    TABLE_JOB_DEFINITIONS,
                    sql.SQL(", ").join(map(sql.Identifier, _COLUMNS)),
                    sql.SQL(", ").join(map(sql.Placeholder, _COLUMNS)),
                ),
                definition.model_dump(include=set(_COLUMNS)),
            )
        logger.info(
            f"Created definition {definition.definition_id} (group={definition.group_id})"
        )
        return definition

    async def get(
        self,
        definition_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> Optional[JobDefinition]:
        """Get a definition by ID."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE definition_id = %s").format(
                        TABLE_JOB_DEFINITIONS
                    ),
                    (definition_id,),
                )
                row = await cur.fetchone()
        return self._row_to_model(row) if row else None

    async def list_by_group(
        self,
        group_id: str,
        include_inactive: bool = False,
    ) -> List[JobDefinition]:
        """Definitions of a group, by typical start month then name."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            if include_inactive:
                query = sql.SQL(
                    "SELECT * FROM {} WHERE group_id = %s "
                    "ORDER BY typical_start_month NULLS LAST, name"
                ).format(TABLE_JOB_DEFINITIONS)
            else:
                query = sql.SQL(
                    "SELECT * FROM {} WHERE group_id = %s AND is_active "
                    "ORDER BY typical_start_month NULLS LAST, name"
                ).format(TABLE_JOB_DEFINITIONS)
            result = await conn.execute(query, (group_id,))
            rows = await result.fetchall()
            return [self._row_to_model(row) for row in rows]

    async def update(
        self,
        definition: JobDefinition,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """
        Write every mutable field of ``definition``.

        Returns:
            True if a row was updated, False if the definition is gone.
        """
        definition.updated_at = datetime.now(timezone.utc)
        mutable = [c for c in _COLUMNS if c not in ("definition_id", "group_id", "created_at")]

        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("UPDATE {} SET {} WHERE definition_id = %(definition_id)s").format(
                    TABLE_JOB_DEFINITIONS,
                    sql.SQL(", ").join(
                        sql.SQL("{} = {}").format(sql.Identifier(col), sql.Placeholder(col))
                        for col in mutable
                    ),
                ),
                definition.model_dump(include=set(mutable) | {"definition_id"}),
            )
            return result.rowcount > 0

    async def delete(
        self,
        definition_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Delete a definition (templates cascade)."""
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("DELETE FROM {} WHERE definition_id = %s").format(
                    TABLE_JOB_DEFINITIONS
                ),
                (definition_id,),
            )
            deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted definition {definition_id}")
        return deleted

    def _row_to_model(self, row: Dict[str, Any]) -> JobDefinition:
        """Convert a database row to a JobDefinition instance."""
        return JobDefinition(
            definition_id=row["definition_id"],
            group_id=row["group_id"],
            name=row["name"],
            prefix=row.get("prefix"),
            category=row.get("category"),
            typical_start_month=row.get("typical_start_month"),
            typical_start_week=row.get("typical_start_week"),
            typical_duration_days=row.get("typical_duration_days"),
            owner_role=row.get("owner_role"),
            description=row.get("description"),
            is_active=bool(row.get("is_active", True)),
            created_at=row["created_at"],
            updated_at=row.get("updated_at") or row["created_at"],
        )
