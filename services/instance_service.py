# ============================================================================
# JOB INSTANCE SERVICE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Domain service - Instances, task forests, capture
# PURPOSE: Load -> engine -> persist for everything on the instance side
# CREATED: 18 OCT 2026
# ============================================================================
"""
JobInstanceService

Coordinates job instances and their task forests:
- Instance lookup by id or display key (PREFIX-N)
- Task create/update/delete with hierarchy and status validation
- Task reorder (single and bulk) over the owning group's task set
- Capture of an instance as a new reusable job definition

Task statuses are keys into the owning group's status catalog; any key
written here is validated against that catalog first.

A task's parent always lives in the same instance as the task (or, for a
freestanding task, is itself freestanding). Parents outside that scope
are reported as PARENT_NOT_FOUND.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults
from core.contracts import Priority
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import JobInstance, Task, parse_instance_key
from engine import (
    CaptureEngine,
    CaptureOutcome,
    EngineError,
    ErrorCode,
    HierarchyPolicy,
    ReorderChange,
    ReorderEngine,
    ReorderOutcome,
    TaskForest,
    Violation,
    choose_base_date,
    uuid_factory,
)
from engine.dates import DateLike, as_date
from engine.instantiation import IdFactory
from repositories import (
    DefinitionRepository,
    InstanceRepository,
    StatusRepository,
    TaskRepository,
    TemplateRepository,
)
from repositories.database import transaction

logger = get_logger(__name__, ComponentType.SERVICE)
checkpoint_logger = logging.getLogger("checkpoint.instances")

TASK_FIELDS = frozenset({
    "title", "description", "start_date", "due_date",
    "status", "priority", "assignee_ids", "assignee_id",
})

CAPTURE_FIELDS = frozenset({
    "prefix", "category", "description", "owner_role",
    "typical_start_month", "typical_start_week", "typical_duration_days",
})


def _reject(violation: Violation) -> EngineError:
    logger.warning(f"Rejected: {violation.code.value} ({violation.message})")
    return EngineError(violation)


def _invalid_status(status: str, group_id: str, task_id: Optional[str] = None) -> EngineError:
    return _reject(
        Violation(
            ErrorCode.INVALID_STATUS,
            f"Invalid status '{status}' for group {group_id}",
            task_id,
        )
    )


def _foreign_parent(
    tasks: Sequence[Task],
    changes: Sequence[ReorderChange],
) -> Optional[Violation]:
    """First change whose new parent sits in another instance than the node."""
    by_id = {t.task_id: t for t in tasks}
    for change in changes:
        if not change.moves_parent or change.parent_id is None:
            continue
        node = by_id.get(change.node_id)
        parent = by_id.get(change.parent_id)
        if node is None or parent is None:
            continue
        if node.instance_id != parent.instance_id:
            return Violation(
                ErrorCode.PARENT_NOT_FOUND,
                f"Parent {change.parent_id} is outside the scope of task {change.node_id}",
                change.node_id,
            )
    return None


class JobInstanceService:
    """Business rules for job instances and their task forests."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        policy: Optional[HierarchyPolicy] = None,
        id_factory: Optional[IdFactory] = None,
    ):
        self.pool = pool
        self.definition_repo = DefinitionRepository(pool)
        self.template_repo = TemplateRepository(pool)
        self.instance_repo = InstanceRepository(pool)
        self.task_repo = TaskRepository(pool)
        self.status_repo = StatusRepository(pool)
        self.policy = policy or HierarchyPolicy(get_defaults().hierarchy.max_depth)
        self.id_factory = id_factory or uuid_factory
        self.capture_engine = CaptureEngine(id_factory=self.id_factory, policy=self.policy)
        self.reorder_engine = ReorderEngine(self.policy)

    # ================================================================
    # INSTANCES
    # ================================================================

    async def get_instance(self, instance_id: str) -> JobInstance:
        """Raises KeyError if the instance does not exist."""
        instance = await self.instance_repo.get(instance_id)
        if instance is None:
            raise KeyError(f"Job instance '{instance_id}' not found")
        return instance

    async def get_instance_by_key(self, group_id: str, key: str) -> JobInstance:
        """
        Resolve a display key such as ``ENT-3`` within a group.

        Raises:
            ValueError: Malformed key
            KeyError: No instance with that key
        """
        prefix, number = parse_instance_key(key)
        instance = await self.instance_repo.get_by_key(group_id, prefix, number)
        if instance is None:
            raise KeyError(f"Job instance '{key}' not found in group {group_id}")
        return instance

    async def list_instances(
        self,
        group_id: str,
        fiscal_year: Optional[int] = None,
    ) -> List[JobInstance]:
        return await self.instance_repo.list_by_group(group_id, fiscal_year)

    async def list_tasks(self, instance_id: str) -> List[Task]:
        """Tasks of an instance ordered by task_number."""
        await self.get_instance(instance_id)
        return await self.task_repo.list_by_instance(instance_id)

    async def list_task_tree(self, instance_id: str) -> List[Task]:
        """Tasks of an instance in forest pre-order (siblings by sort_order)."""
        tasks = await self.list_tasks(instance_id)
        return TaskForest.build(tasks).unwrap().pre_order()

    # ================================================================
    # CAPTURE
    # ================================================================

    async def capture(
        self,
        instance_id: str,
        actor_id: str,
        name: str,
        today: Optional[date] = None,
        **meta: Any,
    ) -> CaptureOutcome:
        """
        Save an instance's task forest as a new job definition.

        Offsets are measured from the instance's actual start, else today.
        The instance is re-linked to the new definition; its tasks are
        left untouched.

        Raises:
            KeyError: Instance not found
            ValueError: Unknown or invalid definition fields
            EngineError: ORPHAN_TASK, DEPTH_EXCEEDED
        """
        unknown = set(meta) - CAPTURE_FIELDS
        if unknown:
            raise ValueError(f"Unknown definition fields: {', '.join(sorted(unknown))}")

        with log_context(instance_id=instance_id, actor_id=actor_id):
            async with transaction(self.pool) as conn:
                instance = await self.instance_repo.get(instance_id, conn=conn)
                if instance is None:
                    raise KeyError(f"Job instance '{instance_id}' not found")

                tasks = await self.task_repo.list_by_instance(instance_id, conn=conn)
                forest = TaskForest.build(tasks).unwrap()
                base = choose_base_date(instance, today)

                result = self.capture_engine.capture(
                    forest,
                    base,
                    {"group_id": instance.group_id, "name": name, **meta},
                    instance=instance,
                )
                if not result.ok:
                    raise _reject(result.violation)
                outcome = result.value

                await self.definition_repo.create(outcome.definition, conn=conn)
                await self.template_repo.create_many(outcome.templates, conn=conn)
                await self.instance_repo.link_definition(
                    instance_id, outcome.definition.definition_id, conn=conn
                )

            with log_context(definition_id=outcome.definition.definition_id):
                logger.info(
                    f"Captured instance {instance_id} as definition "
                    f"'{outcome.definition.name}' ({len(outcome.templates)} templates)"
                )
                log_checkpoint(
                    "capture_completed",
                    {"template_count": len(outcome.templates), "base_date": base.isoformat()},
                    logger=checkpoint_logger,
                )
            return outcome

    # ================================================================
    # TASKS
    # ================================================================

    async def get_task(self, task_id: str) -> Task:
        task = await self.task_repo.get(task_id)
        if task is None:
            raise KeyError(f"Task '{task_id}' not found")
        return task

    async def list_group_tasks(
        self,
        group_id: str,
        status: Optional[str] = None,
        parent_only: bool = False,
    ) -> List[Task]:
        """Group tasks by due date, optionally filtered by status or to roots."""
        tasks = await self.task_repo.list_by_group(group_id)
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        if parent_only:
            tasks = [t for t in tasks if t.parent_task_id is None]
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or date.min))

    async def create_task(
        self,
        group_id: str,
        title: str,
        created_by: str,
        parent_task_id: Optional[str] = None,
        instance_id: Optional[str] = None,
        template_id: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[DateLike] = None,
        due_date: Optional[DateLike] = None,
        status: Optional[str] = None,
        priority: Priority = Priority.NORMAL,
        assignee_ids: Optional[Sequence[str]] = None,
        sort_order: Optional[int] = None,
    ) -> Task:
        """
        Create a task, freestanding or inside an instance.

        The parent must be a task of the same instance (a freestanding task
        of the group when instance_id is None). Status defaults to the
        catalog's initial status; an explicit status must be in the catalog.
        Inside an instance the task gets the next task_number, allocated
        under the instance's advisory lock.

        Raises:
            KeyError: Instance not found
            EngineError: PARENT_NOT_FOUND, DEPTH_EXCEEDED, INVALID_STATUS,
                NO_INITIAL_STATUS
        """
        with log_context(group_id=group_id, instance_id=instance_id, actor_id=created_by):
            async with transaction(self.pool) as conn:
                if instance_id is not None:
                    instance = await self.instance_repo.get(instance_id, conn=conn)
                    if instance is None:
                        raise KeyError(f"Job instance '{instance_id}' not found")

                catalog = await self.status_repo.get_catalog(group_id, conn=conn)
                if status is None:
                    status = catalog.initial_status()
                    if status is None:
                        raise _reject(
                            Violation(
                                ErrorCode.NO_INITIAL_STATUS,
                                f"Group {group_id} has no non-done status to start tasks in",
                            )
                        )
                elif not catalog.has_status(status):
                    raise _invalid_status(status, group_id)

                if instance_id is not None:
                    scope = await self.task_repo.list_by_instance(instance_id, conn=conn)
                else:
                    group_tasks = await self.task_repo.list_by_group(group_id, conn=conn)
                    scope = [t for t in group_tasks if t.is_freestanding]
                forest = TaskForest.build(scope).unwrap()
                checked = self.policy.check_parent(None, parent_task_id, forest.depth_of)
                if not checked.ok:
                    raise _reject(checked.violation)

                task_number = None
                if instance_id is not None:
                    await self.task_repo.lock_task_numbers(instance_id, conn)
                    task_number = await self.task_repo.next_task_number(instance_id, conn)

                task = Task(
                    task_id=self.id_factory(),
                    group_id=group_id,
                    instance_id=instance_id,
                    template_id=template_id,
                    parent_task_id=parent_task_id,
                    depth=checked.value,
                    task_number=task_number,
                    title=title,
                    description=description,
                    start_date=as_date(start_date) if start_date is not None else None,
                    due_date=as_date(due_date) if due_date is not None else None,
                    status=status,
                    priority=priority,
                    assignee_ids=list(assignee_ids or []),
                    sort_order=(
                        sort_order if sort_order is not None
                        else len(forest.children_of(parent_task_id))
                    ),
                    created_by=created_by,
                )
                await self.task_repo.create(task, conn=conn)

            logger.info(f"Created task {task.task_id} at depth {task.depth}")
            return task

    async def update_task(self, task_id: str, changes: Dict[str, Any]) -> Task:
        """
        Partial update of task content (not hierarchy; use reorder_task).

        Raises:
            ValueError: No fields, unknown fields, or invalid values
            KeyError: Task not found
            EngineError: INVALID_STATUS
        """
        if not changes:
            raise ValueError("No fields to update")
        unknown = set(changes) - TASK_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        changes = dict(changes)
        if "assignee_id" in changes:
            single = changes.pop("assignee_id")
            changes.setdefault("assignee_ids", [single] if single else [])

        async with transaction(self.pool) as conn:
            current = await self.task_repo.get(task_id, conn=conn)
            if current is None:
                raise KeyError(f"Task '{task_id}' not found")
            if "status" in changes:
                catalog = await self.status_repo.get_catalog(current.group_id, conn=conn)
                if not catalog.has_status(changes["status"]):
                    raise _invalid_status(changes["status"], current.group_id, task_id)

            updated = Task.model_validate({**current.model_dump(), **changes})
            updated.touch()
            await self.task_repo.update(updated, conn=conn)
        return updated

    async def update_task_status(self, task_id: str, status: str) -> Task:
        """
        Move a task to another status of its group's catalog.

        Raises:
            KeyError: Task not found
            EngineError: INVALID_STATUS
        """
        async with transaction(self.pool) as conn:
            task = await self.task_repo.get(task_id, conn=conn)
            if task is None:
                raise KeyError(f"Task '{task_id}' not found")
            catalog = await self.status_repo.get_catalog(task.group_id, conn=conn)
            if not catalog.has_status(status):
                raise _invalid_status(status, task.group_id, task_id)
            await self.task_repo.update_status(task_id, status, conn=conn)

        task.status = status
        task.touch()
        return task

    async def update_task_priority(self, task_id: str, priority: Any) -> Task:
        """
        Raises:
            ValueError: Unknown priority
            KeyError: Task not found
        """
        try:
            priority = Priority(priority)
        except ValueError:
            raise ValueError(f"Invalid priority '{priority}'") from None

        task = await self.get_task(task_id)
        if not await self.task_repo.update_priority(task_id, priority):
            raise KeyError(f"Task '{task_id}' not found")
        task.priority = priority
        task.touch()
        return task

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; its subtree cascades in storage."""
        if not await self.task_repo.delete(task_id):
            raise KeyError(f"Task '{task_id}' not found")
        logger.info(f"Deleted task {task_id}")

    # ================================================================
    # REORDER
    # ================================================================

    async def reorder_task(self, change: ReorderChange) -> Task:
        """
        Reparent and/or resort one task (and carry its subtree).

        Raises:
            ValueError: Neither parent nor sort_order given
            EngineError: NODE_NOT_FOUND, SELF_PARENT, PARENT_NOT_FOUND,
                CYCLE_DETECTED, DEPTH_EXCEEDED
        """
        if not change.moves_parent and change.sort_order is None:
            raise ValueError("No fields to update")

        async with transaction(self.pool) as conn:
            forest, outcome = await self._reorder_tasks_in(conn, [change])

        updated = {t.task_id: t for t in outcome.apply_to(forest)}
        return updated[change.node_id]

    async def reorder_tasks(self, changes: Sequence[ReorderChange]) -> ReorderOutcome:
        """
        Apply a batch of task moves atomically.

        All tasks must belong to the group of the first task in the batch.
        An empty batch is a successful no-op.
        """
        if not changes:
            return ReorderOutcome(count=0)

        async with transaction(self.pool) as conn:
            _, outcome = await self._reorder_tasks_in(conn, changes)

        log_checkpoint(
            "reorder_applied",
            {"kind": "task", "count": outcome.count, "rows": len(outcome.updates)},
            logger=checkpoint_logger,
        )
        return outcome

    async def _reorder_tasks_in(self, conn, changes: Sequence[ReorderChange]):
        first = await self.task_repo.get(changes[0].node_id, conn=conn)
        if first is None:
            raise _reject(
                Violation(
                    ErrorCode.NODE_NOT_FOUND,
                    f"Task {changes[0].node_id} not found",
                    changes[0].node_id,
                )
            )

        with log_context(group_id=first.group_id):
            tasks = await self.task_repo.list_by_group(first.group_id, conn=conn)
            foreign = _foreign_parent(tasks, changes)
            if foreign is not None:
                raise _reject(foreign)
            forest = TaskForest.build(tasks).unwrap()
            result = self.reorder_engine.reorder_bulk(forest, changes)
            if not result.ok:
                raise _reject(result.violation)
            await self.task_repo.apply_updates(result.value.updates, conn=conn)
            logger.info(
                f"Reordered {result.value.count} tasks ({len(result.value.updates)} rows)"
            )
            return forest, result.value


__all__ = ["JobInstanceService", "TASK_FIELDS", "CAPTURE_FIELDS"]
