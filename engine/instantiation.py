# ============================================================================
# INSTANTIATION ENGINE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Template forest -> dated task forest
# PURPOSE: Expand a job definition's templates into a new job instance
# CREATED: 18 OCT 2026
# ============================================================================
"""
Instantiation Engine

Expands a TemplateForest into a JobInstance plus one Task per template.

For each template, in pre-order:
    1. allocate a task id, remember template_id -> task_id
    2. due_date = anchor_date + relative_days
    3. parent_task_id resolved through the mapping (parent already emitted)
    4. depth recomputed from the new parent and checked against the cap;
       the template's stored depth is not copied, and a stored depth that
       disagrees is only logged as a WARNING
    5. task_number = running counter (1..N) in traversal order
    6. title/description/assignees copied; status = catalog initial status
    7. template_id recorded on the task

The engine performs no I/O. The caller supplies ids, the instance number
and the status catalog, and persists the outcome in one transaction.
Calling instantiate twice yields two independent instances.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional

from core.config import InstantiationDefaults
from core.contracts import InstanceStatus, Priority
from core.logging import get_logger, ComponentType
from core.models import GroupStatusCatalog, JobInstance, Task
from engine.dates import DateLike, add_days, as_date
from engine.forest import TemplateForest
from engine.hierarchy import HierarchyPolicy, default_policy
from engine.results import EngineResult, ErrorCode

logger = get_logger(__name__, ComponentType.ENGINE)

IdFactory = Callable[[], str]


def uuid_factory() -> str:
    """Default opaque id source."""
    return str(uuid.uuid4())


@dataclass
class InstantiationOutcome:
    """New rows ready for bulk insert."""
    instance: JobInstance
    tasks: List[Task] = field(default_factory=list)
    template_to_task: Dict[str, str] = field(default_factory=dict)
    prefix: Optional[str] = None

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @property
    def display_key(self) -> Optional[str]:
        return self.instance.display_key(self.prefix)


class InstantiationEngine:
    """Expands template forests into task forests."""

    def __init__(
        self,
        id_factory: Optional[IdFactory] = None,
        policy: Optional[HierarchyPolicy] = None,
        defaults: Optional[InstantiationDefaults] = None,
    ):
        self.id_factory = id_factory or uuid_factory
        self.policy = policy or default_policy
        self.defaults = defaults or InstantiationDefaults()

    def instantiate(
        self,
        forest: TemplateForest,
        anchor_date: DateLike,
        actor_id: str,
        *,
        group_id: str,
        catalog: GroupStatusCatalog,
        fiscal_year: int,
        instance_number: Optional[int] = None,
        definition_id: Optional[str] = None,
        name: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> EngineResult[InstantiationOutcome]:
        """
        Expand ``forest`` into a new instance anchored at ``anchor_date``.

        Args:
            forest: Templates of one job definition
            anchor_date: Date all relative_days offsets are measured from
            actor_id: Recorded as created_by on the instance and tasks
            group_id: Owning group of the new rows
            catalog: Owning group's status catalog
            fiscal_year: Fiscal year of the run
            instance_number: Next unused number for the group (caller-computed)
            definition_id: Overrides forest.definition_id (empty forests)
            name: Optional instance display name
            prefix: Definition prefix, for the outcome's display_key

        Returns:
            EngineResult with InstantiationOutcome, or a failure for
            NO_INITIAL_STATUS / DEPTH_EXCEEDED.
        """
        anchor = as_date(anchor_date)

        initial_status = catalog.initial_status()
        if initial_status is None:
            return EngineResult.failure(
                ErrorCode.NO_INITIAL_STATUS,
                f"Group {group_id} has no non-done status to start tasks in",
            )

        instance = JobInstance(
            instance_id=self.id_factory(),
            definition_id=definition_id or forest.definition_id,
            group_id=group_id,
            name=name,
            instance_number=instance_number,
            fiscal_year=fiscal_year,
            actual_start=anchor,
            status=InstanceStatus.NOT_STARTED,
            created_by=actor_id,
        )
        outcome = InstantiationOutcome(instance=instance, prefix=prefix)
        depths: Dict[str, int] = {}
        task_number = self.defaults.first_task_number

        for template in forest.pre_order():
            task_id = self.id_factory()
            outcome.template_to_task[template.template_id] = task_id

            parent_task_id: Optional[str] = None
            parent_depth: Optional[int] = None
            if template.parent_template_id is not None:
                parent_task_id = outcome.template_to_task[template.parent_template_id]
                parent_depth = depths[parent_task_id]

            depth = self.policy.compute_depth(parent_depth)
            if depth != template.depth:
                logger.warning(
                    f"Template {template.template_id} stored depth {template.depth} "
                    f"disagrees with parent chain ({depth}); using {depth}"
                )
            checked = self.policy.validate_depth(depth, template.template_id)
            if not checked.ok:
                return EngineResult.from_violation(checked.violation)
            depths[task_id] = depth

            outcome.tasks.append(
                Task(
                    task_id=task_id,
                    group_id=group_id,
                    instance_id=instance.instance_id,
                    template_id=template.template_id,
                    parent_task_id=parent_task_id,
                    depth=depth,
                    task_number=task_number,
                    title=template.title,
                    description=template.description,
                    due_date=add_days(anchor, template.relative_days),
                    status=initial_status,
                    priority=template.default_priority or Priority(self.defaults.default_priority),
                    assignee_ids=list(template.default_assignee_ids),
                    sort_order=template.sort_order,
                    created_by=actor_id,
                )
            )
            task_number += 1

        logger.debug(
            f"Instantiated {outcome.task_count} tasks for definition "
            f"{instance.definition_id} anchored at {anchor.isoformat()}"
        )
        return EngineResult.success(outcome)


__all__ = ["InstantiationEngine", "InstantiationOutcome", "IdFactory", "uuid_factory"]
