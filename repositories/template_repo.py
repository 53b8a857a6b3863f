# ============================================================================
# TASK TEMPLATE REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - TaskTemplate CRUD operations
# PURPOSE: Database access for task_templates table
# CREATED: 18 OCT 2026
# ============================================================================
"""
TaskTemplate Repository

CRUD operations for task templates, plus the bulk hierarchy writes
planned by the reorder engine.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import Priority
from core.models import TaskTemplate
from engine.reorder import NodeUpdate
from .database import TABLE_TASK_TEMPLATES, use_connection

logger = logging.getLogger(__name__)

_INSERT = sql.SQL("""
    INSERT INTO {} (
        template_id, definition_id, parent_template_id, depth,
        title, description, relative_days,
        default_assignee_role, default_assignee_ids, default_priority,
        sort_order, created_at, updated_at
    ) VALUES (
        %(template_id)s, %(definition_id)s, %(parent_template_id)s, %(depth)s,
        %(title)s, %(description)s, %(relative_days)s,
        %(default_assignee_role)s, %(default_assignee_ids)s, %(default_priority)s,
        %(sort_order)s, %(created_at)s, %(updated_at)s
    )
""").format(TABLE_TASK_TEMPLATES)


class TemplateRepository:
    """Repository for TaskTemplate entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(
        self,
        template: TaskTemplate,
        conn: Optional[AsyncConnection] = None,
    ) -> TaskTemplate:
        """Insert one template."""
        async with use_connection(self.pool, conn) as c:
            await c.execute(_INSERT, self._params(template))
        logger.debug(
            f"Created template {template.template_id} in definition {template.definition_id}"
        )
        return template

    async def create_many(
        self,
        templates: List[TaskTemplate],
        conn: Optional[AsyncConnection] = None,
    ) -> List[TaskTemplate]:
        """
        Insert templates in list order.

        Parents must precede children (pre-order or capture order).
        """
        if not templates:
            return []

        async with use_connection(self.pool, conn) as c:
            async with c.cursor() as cur:
                for template in templates:
                    await cur.execute(_INSERT, self._params(template))
        logger.info(
            f"Created {len(templates)} templates for definition {templates[0].definition_id}"
        )
        return templates

    async def get(
        self,
        template_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> Optional[TaskTemplate]:
        """Get a template by ID."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE template_id = %s").format(
                        TABLE_TASK_TEMPLATES
                    ),
                    (template_id,),
                )
                row = await cur.fetchone()
        return self._row_to_model(row) if row else None

    async def list_by_definition(
        self,
        definition_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> List[TaskTemplate]:
        """Every template of a definition (unordered; build a TemplateForest to order)."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE definition_id = %s "
                        "ORDER BY depth, sort_order, relative_days"
                    ).format(TABLE_TASK_TEMPLATES),
                    (definition_id,),
                )
                rows = await cur.fetchall()
        return [self._row_to_model(row) for row in rows]

    async def update(
        self,
        template: TaskTemplate,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Write content fields (hierarchy fields go through apply_updates)."""
        template.updated_at = datetime.now(timezone.utc)
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("""
                    UPDATE {} SET
                        title = %(title)s,
                        description = %(description)s,
                        relative_days = %(relative_days)s,
                        default_assignee_role = %(default_assignee_role)s,
                        default_assignee_ids = %(default_assignee_ids)s,
                        default_priority = %(default_priority)s,
                        sort_order = %(sort_order)s,
                        updated_at = %(updated_at)s
                    WHERE template_id = %(template_id)s
                """).format(TABLE_TASK_TEMPLATES),
                self._params(template),
            )
            return result.rowcount > 0

    async def apply_updates(
        self,
        updates: Iterable[NodeUpdate],
        conn: Optional[AsyncConnection] = None,
    ) -> int:
        """Persist parent/depth/sort_order for each planned node update."""
        now = datetime.now(timezone.utc)
        params = [
            {
                "template_id": u.node_id,
                "parent_template_id": u.parent_id,
                "depth": u.depth,
                "sort_order": u.sort_order,
                "updated_at": now,
            }
            for u in updates
        ]
        if not params:
            return 0

        async with use_connection(self.pool, conn) as c:
            async with c.cursor() as cur:
                await cur.executemany(
                    sql.SQL("""
                        UPDATE {} SET
                            parent_template_id = %(parent_template_id)s,
                            depth = %(depth)s,
                            sort_order = %(sort_order)s,
                            updated_at = %(updated_at)s
                        WHERE template_id = %(template_id)s
                    """).format(TABLE_TASK_TEMPLATES),
                    params,
                )
        return len(params)

    async def delete(
        self,
        template_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("DELETE FROM {} WHERE template_id = %s").format(TABLE_TASK_TEMPLATES),
                (template_id,),
            )
            return result.rowcount > 0

    @staticmethod
    def _params(template: TaskTemplate) -> Dict[str, Any]:
        return {
            "template_id": template.template_id,
            "definition_id": template.definition_id,
            "parent_template_id": template.parent_template_id,
            "depth": template.depth,
            "title": template.title,
            "description": template.description,
            "relative_days": template.relative_days,
            "default_assignee_role": template.default_assignee_role,
            "default_assignee_ids": Json(template.default_assignee_ids),
            "default_priority": template.default_priority.value if template.default_priority else None,
            "sort_order": template.sort_order,
            "created_at": template.created_at,
            "updated_at": template.updated_at,
        }

    def _row_to_model(self, row: Dict[str, Any]) -> TaskTemplate:
        """Convert a database row to a TaskTemplate instance."""
        priority = row.get("default_priority")
        return TaskTemplate(
            template_id=row["template_id"],
            definition_id=row["definition_id"],
            parent_template_id=row.get("parent_template_id"),
            depth=row.get("depth", 0),
            title=row["title"],
            description=row.get("description"),
            relative_days=row.get("relative_days") or 0,
            default_assignee_role=row.get("default_assignee_role"),
            default_assignee_ids=row.get("default_assignee_ids"),
            default_priority=Priority(priority) if priority else None,
            sort_order=row.get("sort_order") or 0,
            created_at=row["created_at"],
            updated_at=row.get("updated_at") or row["created_at"],
        )
