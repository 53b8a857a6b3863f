# ============================================================================
# JOB DEFINITION SERVICE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Domain service - Definitions, template forests, instantiation
# PURPOSE: Load -> engine -> persist for everything on the template side
# CREATED: 18 OCT 2026
# ============================================================================
"""
JobDefinitionService

Coordinates job definitions and their task template forests:
- Definition CRUD (prefix normalized, partial updates)
- Template add/update/delete with hierarchy validation
- Template reorder (single and bulk) through the ReorderEngine
- Instantiation of a definition into a numbered JobInstance + Tasks

Every mutation validates through the engine first and then writes inside
one transaction, so a rejected mutation never leaves partial rows.

Pattern: Constructor injection of AsyncConnectionPool, repos instantiated
in __init__, async methods.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults
from core.contracts import Priority
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import JobDefinition, TaskTemplate
from engine import (
    EngineError,
    ErrorCode,
    HierarchyPolicy,
    InstantiationEngine,
    InstantiationOutcome,
    ReorderChange,
    ReorderEngine,
    ReorderOutcome,
    TemplateForest,
    Violation,
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
checkpoint_logger = logging.getLogger("checkpoint.definitions")

DEFINITION_FIELDS = frozenset({
    "name", "prefix", "category",
    "typical_start_month", "typical_start_week", "typical_duration_days",
    "owner_role", "description", "is_active",
})

TEMPLATE_FIELDS = frozenset({
    "title", "description", "relative_days",
    "default_assignee_role", "default_assignee_ids", "default_assignee_id",
    "default_priority", "sort_order",
})


def _reject(violation: Violation) -> EngineError:
    logger.warning(f"Rejected: {violation.code.value} ({violation.message})")
    return EngineError(violation)


class JobDefinitionService:
    """Business rules for job definitions and their template forests."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        policy: Optional[HierarchyPolicy] = None,
        id_factory: Optional[IdFactory] = None,
    ):
        defaults = get_defaults()
        self.pool = pool
        self.definition_repo = DefinitionRepository(pool)
        self.template_repo = TemplateRepository(pool)
        self.instance_repo = InstanceRepository(pool)
        self.task_repo = TaskRepository(pool)
        self.status_repo = StatusRepository(pool)
        self.policy = policy or HierarchyPolicy(defaults.hierarchy.max_depth)
        self.id_factory = id_factory or uuid_factory
        self.instantiation_engine = InstantiationEngine(
            id_factory=self.id_factory,
            policy=self.policy,
            defaults=defaults.instantiation,
        )
        self.reorder_engine = ReorderEngine(self.policy)

    # ================================================================
    # DEFINITIONS
    # ================================================================

    async def create_definition(self, group_id: str, name: str, **fields: Any) -> JobDefinition:
        """
        Create a job definition.

        Raises:
            ValueError: Unknown field or invalid value (pydantic validation)
        """
        unknown = set(fields) - DEFINITION_FIELDS
        if unknown:
            raise ValueError(f"Unknown definition fields: {', '.join(sorted(unknown))}")

        definition = JobDefinition(
            definition_id=self.id_factory(),
            group_id=group_id,
            name=name,
            **fields,
        )
        await self.definition_repo.create(definition)
        return definition

    async def get_definition(self, definition_id: str) -> JobDefinition:
        """Raises KeyError if the definition does not exist."""
        definition = await self.definition_repo.get(definition_id)
        if definition is None:
            raise KeyError(f"Job definition '{definition_id}' not found")
        return definition

    async def get_definition_with_templates(
        self,
        definition_id: str,
    ) -> Tuple[JobDefinition, List[TaskTemplate]]:
        """Definition plus its templates in forest pre-order."""
        definition = await self.get_definition(definition_id)
        templates = await self.template_repo.list_by_definition(definition_id)
        forest = TemplateForest.build(templates).unwrap()
        return definition, forest.pre_order()

    async def list_definitions(
        self,
        group_id: str,
        include_inactive: bool = False,
    ) -> List[JobDefinition]:
        return await self.definition_repo.list_by_group(group_id, include_inactive)

    async def update_definition(
        self,
        definition_id: str,
        changes: Dict[str, Any],
    ) -> JobDefinition:
        """
        Partial update.

        Raises:
            ValueError: No fields, unknown fields, or invalid values
            KeyError: Definition not found
        """
        if not changes:
            raise ValueError("No fields to update")
        unknown = set(changes) - DEFINITION_FIELDS
        if unknown:
            raise ValueError(f"Unknown definition fields: {', '.join(sorted(unknown))}")

        current = await self.get_definition(definition_id)
        updated = JobDefinition.model_validate({**current.model_dump(), **changes})
        if not await self.definition_repo.update(updated):
            raise KeyError(f"Job definition '{definition_id}' not found")
        return updated

    async def delete_definition(self, definition_id: str) -> None:
        """Delete a definition and (by cascade) its templates."""
        if not await self.definition_repo.delete(definition_id):
            raise KeyError(f"Job definition '{definition_id}' not found")

    # ================================================================
    # TEMPLATES
    # ================================================================

    async def add_template(
        self,
        definition_id: str,
        title: str,
        parent_template_id: Optional[str] = None,
        relative_days: int = 0,
        description: Optional[str] = None,
        default_assignee_role: Optional[str] = None,
        default_assignee_ids: Optional[Sequence[str]] = None,
        default_priority: Optional[Priority] = None,
        sort_order: Optional[int] = None,
    ) -> TaskTemplate:
        """
        Add a template under ``parent_template_id`` (None for a root).

        The parent must belong to the same definition. Without an explicit
        sort_order the template is appended after its existing siblings.

        Raises:
            KeyError: Definition not found
            EngineError: PARENT_NOT_FOUND, DEPTH_EXCEEDED, ORPHAN_TEMPLATE
        """
        with log_context(definition_id=definition_id):
            async with transaction(self.pool) as conn:
                if await self.definition_repo.get(definition_id, conn=conn) is None:
                    raise KeyError(f"Job definition '{definition_id}' not found")

                templates = await self.template_repo.list_by_definition(definition_id, conn=conn)
                forest = TemplateForest.build(templates).unwrap()

                checked = self.policy.check_parent(None, parent_template_id, forest.depth_of)
                if not checked.ok:
                    raise _reject(checked.violation)

                template = TaskTemplate(
                    template_id=self.id_factory(),
                    definition_id=definition_id,
                    parent_template_id=parent_template_id,
                    depth=checked.value,
                    title=title,
                    description=description,
                    relative_days=relative_days,
                    default_assignee_role=default_assignee_role,
                    default_assignee_ids=list(default_assignee_ids or []),
                    default_priority=default_priority,
                    sort_order=(
                        sort_order if sort_order is not None
                        else len(forest.children_of(parent_template_id))
                    ),
                )
                await self.template_repo.create(template, conn=conn)

            logger.info(f"Added template {template.template_id} at depth {template.depth}")
            return template

    async def update_template(self, template_id: str, changes: Dict[str, Any]) -> TaskTemplate:
        """
        Update content fields of a template.

        A ``parent_template_id`` key moves the template (with its subtree)
        through the same checks as reorder_template, in the same transaction.

        Raises:
            ValueError: No fields, unknown fields, or invalid values
            KeyError: Template not found
            EngineError: Hierarchy violations when moving
        """
        if not changes:
            raise ValueError("No fields to update")
        content = {k: v for k, v in changes.items() if k != "parent_template_id"}
        unknown = set(content) - TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown template fields: {', '.join(sorted(unknown))}")
        if "default_assignee_id" in content:
            single = content.pop("default_assignee_id")
            content.setdefault("default_assignee_ids", [single] if single else [])

        async with transaction(self.pool) as conn:
            current = await self.template_repo.get(template_id, conn=conn)
            if current is None:
                raise KeyError(f"Template '{template_id}' not found")

            updated = TaskTemplate.model_validate({**current.model_dump(), **content})
            await self.template_repo.update(updated, conn=conn)

            if "parent_template_id" in changes:
                change = ReorderChange(
                    node_id=template_id,
                    parent_id=changes["parent_template_id"],
                )
                outcome = await self._reorder_templates_in(conn, updated.definition_id, [change])
                moved = outcome.by_id().get(template_id)
                if moved is not None:
                    updated.parent_template_id = moved.parent_id
                    updated.depth = moved.depth
                    updated.sort_order = moved.sort_order

        return updated

    async def delete_template(self, template_id: str) -> None:
        """
        Delete a leaf template.

        Raises:
            KeyError: Template not found
            EngineError: HAS_CHILDREN while child templates exist
        """
        async with transaction(self.pool) as conn:
            template = await self.template_repo.get(template_id, conn=conn)
            if template is None:
                raise KeyError(f"Template '{template_id}' not found")

            templates = await self.template_repo.list_by_definition(template.definition_id, conn=conn)
            forest = TemplateForest.build(templates).unwrap()
            if forest.has_children(template_id):
                raise _reject(
                    Violation(
                        ErrorCode.HAS_CHILDREN,
                        f"Template {template_id} has child templates; delete them first",
                        template_id,
                    )
                )
            await self.template_repo.delete(template_id, conn=conn)
        logger.info(f"Deleted template {template_id}")

    # ================================================================
    # REORDER
    # ================================================================

    async def reorder_template(self, change: ReorderChange) -> TaskTemplate:
        """
        Reparent and/or resort one template.

        Raises:
            ValueError: Neither parent nor sort_order given
            EngineError: NODE_NOT_FOUND, SELF_PARENT, PARENT_NOT_FOUND,
                CYCLE_DETECTED, DEPTH_EXCEEDED
        """
        if not change.moves_parent and change.sort_order is None:
            raise ValueError("No fields to update")

        async with transaction(self.pool) as conn:
            template = await self.template_repo.get(change.node_id, conn=conn)
            if template is None:
                raise _reject(
                    Violation(
                        ErrorCode.NODE_NOT_FOUND,
                        f"Template {change.node_id} not found",
                        change.node_id,
                    )
                )
            templates = await self.template_repo.list_by_definition(template.definition_id, conn=conn)
            forest = TemplateForest.build(templates).unwrap()
            outcome = self._plan(forest, [change])
            await self.template_repo.apply_updates(outcome.updates, conn=conn)

        updated = {t.template_id: t for t in outcome.apply_to(forest)}
        return updated.get(change.node_id, template)

    async def reorder_templates(
        self,
        definition_id: str,
        changes: Sequence[ReorderChange],
    ) -> ReorderOutcome:
        """
        Apply a batch of template moves atomically.

        An empty batch is a successful no-op. Any violation rejects the
        whole batch and nothing is written.
        """
        if not changes:
            return ReorderOutcome(count=0)

        with log_context(definition_id=definition_id):
            async with transaction(self.pool) as conn:
                if await self.definition_repo.get(definition_id, conn=conn) is None:
                    raise KeyError(f"Job definition '{definition_id}' not found")
                outcome = await self._reorder_templates_in(conn, definition_id, changes)

            log_checkpoint(
                "reorder_applied",
                {"kind": "template", "count": outcome.count, "rows": len(outcome.updates)},
                logger=checkpoint_logger,
            )
            return outcome

    async def _reorder_templates_in(
        self,
        conn,
        definition_id: str,
        changes: Sequence[ReorderChange],
    ) -> ReorderOutcome:
        templates = await self.template_repo.list_by_definition(definition_id, conn=conn)
        forest = TemplateForest.build(templates).unwrap()
        outcome = self._plan(forest, changes)
        await self.template_repo.apply_updates(outcome.updates, conn=conn)
        return outcome

    def _plan(self, forest: TemplateForest, changes: Sequence[ReorderChange]) -> ReorderOutcome:
        result = self.reorder_engine.reorder_bulk(forest, changes)
        if not result.ok:
            raise _reject(result.violation)
        return result.value

    # ================================================================
    # INSTANTIATE
    # ================================================================

    async def instantiate(
        self,
        definition_id: str,
        fiscal_year: int,
        actor_id: str,
        actual_start: Optional[DateLike] = None,
        name: Optional[str] = None,
    ) -> InstantiationOutcome:
        """
        Create a JobInstance and its task forest from a definition.

        anchor date = actual_start, else today. The instance number comes from the
        group's counter row (group_counters), advanced under the group's
        advisory lock inside the same transaction that inserts the instance
        and its tasks.

        Raises:
            KeyError: Definition not found
            EngineError: NO_INITIAL_STATUS, ORPHAN_TEMPLATE, DEPTH_EXCEEDED
        """
        anchor = as_date(actual_start) if actual_start is not None else date.today()

        with log_context(definition_id=definition_id, actor_id=actor_id):
            async with transaction(self.pool) as conn:
                definition = await self.definition_repo.get(definition_id, conn=conn)
                if definition is None:
                    raise KeyError(f"Job definition '{definition_id}' not found")
                if not definition.is_active:
                    logger.warning(f"Instantiating inactive definition {definition_id}")

                templates = await self.template_repo.list_by_definition(definition_id, conn=conn)
                forest = TemplateForest.build(templates).unwrap()
                catalog = await self.status_repo.get_catalog(definition.group_id, conn=conn)

                await self.instance_repo.lock_group_numbers(definition.group_id, conn)
                number = await self.instance_repo.next_instance_number(definition.group_id, conn)

                result = self.instantiation_engine.instantiate(
                    forest,
                    anchor,
                    actor_id,
                    group_id=definition.group_id,
                    catalog=catalog,
                    fiscal_year=fiscal_year,
                    instance_number=number,
                    definition_id=definition_id,
                    name=name,
                    prefix=definition.prefix,
                )
                if not result.ok:
                    raise _reject(result.violation)
                outcome = result.value

                await self.instance_repo.create(outcome.instance, conn=conn)
                await self.task_repo.create_many(outcome.tasks, conn=conn)

            with log_context(instance_id=outcome.instance.instance_id, group_id=definition.group_id):
                logger.info(
                    f"Instantiated {outcome.display_key or outcome.instance.instance_id} "
                    f"with {outcome.task_count} tasks"
                )
                log_checkpoint(
                    "instantiate_completed",
                    {
                        "instance_number": outcome.instance.instance_number,
                        "task_count": outcome.task_count,
                        "anchor_date": anchor.isoformat(),
                    },
                    logger=checkpoint_logger,
                )
            return outcome


__all__ = ["JobDefinitionService", "DEFINITION_FIELDS", "TEMPLATE_FIELDS"]
