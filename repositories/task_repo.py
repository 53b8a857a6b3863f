# ============================================================================
# TASK REPOSITORY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Task CRUD operations
# PURPOSE: Database access for tasks table
# CREATED: 18 OCT 2026
# ============================================================================
"""
Task Repository

CRUD operations for tasks (instance-bound and freestanding), the
per-instance task number sequence, and the bulk hierarchy writes planned
by the reorder engine. Deleting a task cascades to its children.

Task numbers:
    next_task_number() must run inside the caller's transaction after
    lock_task_numbers(); the unique (instance_id, task_number) index
    backs the lock.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from psycopg import AsyncConnection, sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import Priority
from core.models import Task
from engine.reorder import NodeUpdate
from .database import TABLE_TASKS, use_connection

logger = logging.getLogger(__name__)

TASK_NUMBER_LOCK_PREFIX = "jobcycle:task_number:"


def instance_lock_id(instance_id: str) -> int:
    """Signed int64 advisory lock key for an instance's task numbers."""
    h = hashlib.sha256(f"{TASK_NUMBER_LOCK_PREFIX}{instance_id}".encode()).digest()[:8]
    return int.from_bytes(h, byteorder="big", signed=True)

_INSERT = sql.SQL("""
    INSERT INTO {} (
        task_id, group_id, instance_id, template_id, parent_task_id,
        depth, task_number, title, description, start_date, due_date,
        status, priority, assignee_ids, sort_order,
        created_by, created_at, updated_at
    ) VALUES (
        %(task_id)s, %(group_id)s, %(instance_id)s, %(template_id)s, %(parent_task_id)s,
        %(depth)s, %(task_number)s, %(title)s, %(description)s, %(start_date)s, %(due_date)s,
        %(status)s, %(priority)s, %(assignee_ids)s, %(sort_order)s,
        %(created_by)s, %(created_at)s, %(updated_at)s
    )
""").format(TABLE_TASKS)


class TaskRepository:
    """Repository for Task entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(
        self,
        task: Task,
        conn: Optional[AsyncConnection] = None,
    ) -> Task:
        """Insert one task."""
        async with use_connection(self.pool, conn) as c:
            await c.execute(_INSERT, self._params(task))
        logger.debug(f"Created task {task.task_id} (instance={task.instance_id})")
        return task

    async def create_many(
        self,
        tasks: List[Task],
        conn: Optional[AsyncConnection] = None,
    ) -> List[Task]:
        """
        Insert tasks in list order.

        Parents must precede children (the instantiation pre-order does).
        """
        if not tasks:
            return []

        async with use_connection(self.pool, conn) as c:
            async with c.cursor() as cur:
                for task in tasks:
                    await cur.execute(_INSERT, self._params(task))
        logger.info(f"Created {len(tasks)} tasks for instance {tasks[0].instance_id}")
        return tasks

    async def get(
        self,
        task_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> Optional[Task]:
        """Get a task by ID."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE task_id = %s").format(TABLE_TASKS),
                    (task_id,),
                )
                row = await cur.fetchone()
        return self._row_to_model(row) if row else None

    async def list_by_instance(
        self,
        instance_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> List[Task]:
        """Tasks of one instance by task_number."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE instance_id = %s "
                        "ORDER BY task_number NULLS LAST, created_at"
                    ).format(TABLE_TASKS),
                    (instance_id,),
                )
                rows = await cur.fetchall()
        return [self._row_to_model(row) for row in rows]

    async def list_by_group(
        self,
        group_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> List[Task]:
        """Every task of a group (the scope reorders validate against)."""
        async with use_connection(self.pool, conn) as c:
            async with c.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL(
                        "SELECT * FROM {} WHERE group_id = %s "
                        "ORDER BY depth, sort_order, task_number NULLS LAST"
                    ).format(TABLE_TASKS),
                    (group_id,),
                )
                rows = await cur.fetchall()
        return [self._row_to_model(row) for row in rows]

    async def lock_task_numbers(self, instance_id: str, conn: AsyncConnection) -> None:
        """Take the instance's transaction-level task-number lock."""
        await conn.execute("SELECT pg_advisory_xact_lock(%s)", (instance_lock_id(instance_id),))
        logger.debug(f"Acquired task-number lock for instance {instance_id}")

    async def next_task_number(self, instance_id: str, conn: AsyncConnection) -> int:
        """Max task number in the instance + 1."""
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                sql.SQL(
                    "SELECT COALESCE(MAX(task_number), 0) + 1 AS next_number "
                    "FROM {} WHERE instance_id = %s"
                ).format(TABLE_TASKS),
                (instance_id,),
            )
            row = await cur.fetchone()
        return row["next_number"]

    async def update(
        self,
        task: Task,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Write content fields (hierarchy fields go through apply_updates)."""
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("""
                    UPDATE {} SET
                        title = %(title)s,
                        description = %(description)s,
                        start_date = %(start_date)s,
                        due_date = %(due_date)s,
                        status = %(status)s,
                        priority = %(priority)s,
                        assignee_ids = %(assignee_ids)s,
                        updated_at = %(updated_at)s
                    WHERE task_id = %(task_id)s
                """).format(TABLE_TASKS),
                self._params(task),
            )
            return result.rowcount > 0

    async def update_status(
        self,
        task_id: str,
        status: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("UPDATE {} SET status = %s, updated_at = %s WHERE task_id = %s").format(
                    TABLE_TASKS
                ),
                (status, datetime.now(timezone.utc), task_id),
            )
            return result.rowcount > 0

    async def update_priority(
        self,
        task_id: str,
        priority: Priority,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("UPDATE {} SET priority = %s, updated_at = %s WHERE task_id = %s").format(
                    TABLE_TASKS
                ),
                (priority.value, datetime.now(timezone.utc), task_id),
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
                "task_id": u.node_id,
                "parent_task_id": u.parent_id,
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
                            parent_task_id = %(parent_task_id)s,
                            depth = %(depth)s,
                            sort_order = %(sort_order)s,
                            updated_at = %(updated_at)s
                        WHERE task_id = %(task_id)s
                    """).format(TABLE_TASKS),
                    params,
                )
        return len(params)

    async def delete(
        self,
        task_id: str,
        conn: Optional[AsyncConnection] = None,
    ) -> bool:
        """Delete a task (children cascade)."""
        async with use_connection(self.pool, conn) as c:
            result = await c.execute(
                sql.SQL("DELETE FROM {} WHERE task_id = %s").format(TABLE_TASKS),
                (task_id,),
            )
            return result.rowcount > 0

    @staticmethod
    def _params(task: Task) -> Dict[str, Any]:
        return {
            "task_id": task.task_id,
            "group_id": task.group_id,
            "instance_id": task.instance_id,
            "template_id": task.template_id,
            "parent_task_id": task.parent_task_id,
            "depth": task.depth,
            "task_number": task.task_number,
            "title": task.title,
            "description": task.description,
            "start_date": task.start_date,
            "due_date": task.due_date,
            "status": task.status,
            "priority": task.priority.value,
            "assignee_ids": Json(task.assignee_ids),
            "sort_order": task.sort_order,
            "created_by": task.created_by,
            "created_at": task.created_at,
            "updated_at": task.updated_at,
        }

    def _row_to_model(self, row: Dict[str, Any]) -> Task:
        """Convert a database row to a Task instance."""
        return Task(
            task_id=row["task_id"],
            group_id=row["group_id"],
            instance_id=row.get("instance_id"),
            template_id=row.get("template_id"),
            parent_task_id=row.get("parent_task_id"),
            depth=row.get("depth", 0),
            task_number=row.get("task_number"),
            title=row["title"],
            description=row.get("description"),
            start_date=row.get("start_date"),
            due_date=row.get("due_date"),
            status=row["status"],
            priority=Priority(row.get("priority") or Priority.NORMAL.value),
            assignee_ids=row.get("assignee_ids"),
            sort_order=row.get("sort_order") or 0,
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_at=row.get("updated_at") or row["created_at"],
        )
