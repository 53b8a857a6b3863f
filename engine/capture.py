# ============================================================================
# CAPTURE ENGINE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Task forest -> reusable template forest
# PURPOSE: Save a realized job instance as a new job definition
# CREATED: 18 OCT 2026
# ============================================================================
"""
Capture Engine

The inverse of instantiation: freezes a realized TaskForest into a new
JobDefinition and its TaskTemplates.

    base_date      = instance.actual_start, else today
    relative_days  = due_date - base_date in whole days (0 without due date)
    sort_order     = encounter order in capture_order()

Source tasks are never mutated. Instantiating the captured definition at
the same base date reproduces every non-null due date.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from core.logging import get_logger, ComponentType
from core.models import JobDefinition, JobInstance, TaskTemplate
from engine.dates import DateLike, as_date, days_between
from engine.forest import TaskForest
from engine.hierarchy import HierarchyPolicy, default_policy
from engine.instantiation import IdFactory, uuid_factory
from engine.results import EngineResult

logger = get_logger(__name__, ComponentType.ENGINE)


@dataclass
class CaptureOutcome:
    """New definition + templates ready for insert, and the relinked instance."""
    definition: JobDefinition
    templates: List[TaskTemplate] = field(default_factory=list)
    task_to_template: Dict[str, str] = field(default_factory=dict)
    base_date: Optional[date] = None
    linked_instance: Optional[JobInstance] = None


def choose_base_date(
    instance: Optional[JobInstance],
    today: Optional[date] = None,
) -> date:
    """Instance actual start if known, otherwise the capture date."""
    if instance is not None and instance.actual_start is not None:
        return instance.actual_start
    return today or date.today()


class CaptureEngine:
    """Reduces task forests to template forests."""

    def __init__(
        self,
        id_factory: Optional[IdFactory] = None,
        policy: Optional[HierarchyPolicy] = None,
    ):
        self.id_factory = id_factory or uuid_factory
        self.policy = policy or default_policy

    def capture(
        self,
        forest: TaskForest,
        base_date: DateLike,
        definition_meta: Dict[str, Any],
        *,
        instance: Optional[JobInstance] = None,
    ) -> EngineResult[CaptureOutcome]:
        """
        Capture ``forest`` as a new job definition.

        Args:
            forest: Tasks of the instance being captured
            base_date: Date offsets are measured from (see choose_base_date)
            definition_meta: JobDefinition fields (group_id, name, prefix, ...)
            instance: Source instance; a copy linked to the new definition
                is returned in ``linked_instance``

        Returns:
            EngineResult with CaptureOutcome, or DEPTH_EXCEEDED for corrupt input.
        """
        base = as_date(base_date)
        meta = dict(definition_meta)
        meta.setdefault("definition_id", self.id_factory())
        definition = JobDefinition(**meta)

        outcome = CaptureOutcome(definition=definition, base_date=base)
        depths: Dict[str, int] = {}

        for position, task in enumerate(forest.capture_order()):
            template_id = self.id_factory()
            outcome.task_to_template[task.task_id] = template_id

            parent_template_id: Optional[str] = None
            parent_depth: Optional[int] = None
            if task.parent_task_id is not None:
                parent_template_id = outcome.task_to_template[task.parent_task_id]
                parent_depth = depths[parent_template_id]

            depth = self.policy.compute_depth(parent_depth)
            if depth != task.depth:
                logger.warning(
                    f"Task {task.task_id} stored depth {task.depth} disagrees "
                    f"with parent chain ({depth}); using {depth}"
                )
            checked = self.policy.validate_depth(depth, task.task_id)
            if not checked.ok:
                return EngineResult.from_violation(checked.violation)
            depths[template_id] = depth

            outcome.templates.append(
                TaskTemplate(
                    template_id=template_id,
                    definition_id=definition.definition_id,
                    parent_template_id=parent_template_id,
                    depth=depth,
                    title=task.title,
                    description=task.description,
                    relative_days=days_between(base, task.due_date),
                    default_assignee_ids=list(task.assignee_ids),
                    default_priority=task.priority,
                    sort_order=position,
                )
            )

        if instance is not None:
            linked = instance.model_copy(deep=True)
            linked.link_definition(definition.definition_id)
            outcome.linked_instance = linked

        logger.debug(
            f"Captured {len(outcome.templates)} templates into definition "
            f"{definition.definition_id} (base {base.isoformat()})"
        )
        return EngineResult.success(outcome)


__all__ = ["CaptureEngine", "CaptureOutcome", "choose_base_date"]
