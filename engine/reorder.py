# ============================================================================
# REORDER ENGINE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Reparent and resort template/task forests
# PURPOSE: Validate-then-commit hierarchy edits, single or batched
# CREATED: 18 OCT 2026
# ============================================================================
"""
Reorder Engine

Computes the field-level updates (parent, depth, sort_order) for a batch
of reorder changes against a loaded forest. Nothing is applied unless the
whole batch is valid.

Validation runs in two passes:

1. Per change, in order, against the PRE-batch state: the node must
   exist, must not become its own parent, the parent must exist in the
   forest, must not be one of the node's descendants, and the parent's
   stored depth + 1 must not exceed the cap. Another change in the same
   batch never alters the depth a later change is validated against.
2. The resulting forest as a whole: no cycles, and every node (including
   descendants carried along with a moved subtree) within the cap.

Descendants of a moved node are re-leveled and emitted as updates, so the
depth of every node keeps equalling its parent's depth + 1.

Omitted fields keep their stored value: a change without ``parent_id``
does not move the node; a change without ``sort_order`` keeps its order.
An empty batch is a successful no-op.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from core.logging import get_logger, ComponentType
from engine.forest import TaskForest, TemplateForest
from engine.hierarchy import HierarchyPolicy, default_policy
from engine.results import EngineResult, ErrorCode

logger = get_logger(__name__, ComponentType.ENGINE)

Forest = Union[TemplateForest, TaskForest]


class ReorderChange(BaseModel):
    """
    One requested edit.

    ``parent_id`` distinguishes "not given" (keep parent) from an explicit
    null (move to root) through pydantic's fields-set tracking.
    """
    node_id: str = Field(..., max_length=64)
    parent_id: Optional[str] = Field(default=None, max_length=64)
    sort_order: Optional[int] = None

    @property
    def moves_parent(self) -> bool:
        return "parent_id" in self.model_fields_set


@dataclass(frozen=True)
class NodeUpdate:
    """Field values to persist for one node."""
    node_id: str
    parent_id: Optional[str]
    depth: int
    sort_order: int


@dataclass
class ReorderOutcome:
    """Validated result of a reorder batch."""
    count: int
    updates: List[NodeUpdate] = field(default_factory=list)

    def by_id(self) -> Dict[str, NodeUpdate]:
        return {u.node_id: u for u in self.updates}

    def apply_to(self, forest: Forest) -> list:
        """Copies of the affected nodes with the updates applied."""
        updated = []
        for update in self.updates:
            node = forest.get(update.node_id)
            updated.append(
                node.model_copy(
                    update={
                        forest.parent_field: update.parent_id,
                        "depth": update.depth,
                        "sort_order": update.sort_order,
                    }
                )
            )
        return updated


class ReorderEngine:
    """Validates and plans reorder batches for either forest type."""

    def __init__(self, policy: Optional[HierarchyPolicy] = None):
        self.policy = policy or default_policy

    def reorder_one(
        self,
        forest: Forest,
        change: ReorderChange,
    ) -> EngineResult[ReorderOutcome]:
        """Reparent and/or resort a single node (with its subtree)."""
        return self.reorder_bulk(forest, [change])

    def reorder_bulk(
        self,
        forest: Forest,
        changes: Sequence[ReorderChange],
    ) -> EngineResult[ReorderOutcome]:
        """Plan all ``changes`` as one all-or-nothing unit."""
        if not changes:
            return EngineResult.success(ReorderOutcome(count=0))

        # Pass 1: each change against the pre-batch state.
        for change in changes:
            if change.node_id not in forest:
                return EngineResult.failure(
                    ErrorCode.NODE_NOT_FOUND,
                    f"{forest.label.capitalize()} {change.node_id} not found",
                    change.node_id,
                )
            if change.moves_parent:
                checked = self.policy.check_parent(
                    change.node_id,
                    change.parent_id,
                    forest.depth_of,
                    forest.parent_of,
                )
                if not checked.ok:
                    return EngineResult.from_violation(checked.violation)

        parents: Dict[str, Optional[str]] = {nid: forest.parent_of(nid) for nid in forest.ids()}
        sort_orders: Dict[str, int] = {node_id: forest.get(node_id).sort_order for node_id in forest.ids()}
        touched: List[str] = []
        for change in changes:
            if change.moves_parent:
                parents[change.node_id] = change.parent_id
            if change.sort_order is not None:
                sort_orders[change.node_id] = change.sort_order
            if change.node_id not in touched:
                touched.append(change.node_id)

        # Pass 2: the resulting forest.
        levels = self._resolve_levels(parents)
        if levels.violation_node is not None:
            return EngineResult.failure(
                ErrorCode.CYCLE_DETECTED,
                f"Reorder would create a parent cycle through {levels.violation_node}",
                levels.violation_node,
            )
        for node_id in touched + [nid for nid in forest.ids() if nid not in touched]:
            checked = self.policy.validate_depth(levels.levels[node_id], node_id)
            if not checked.ok:
                return EngineResult.from_violation(checked.violation)

        updates: List[NodeUpdate] = []
        for node_id in forest.ids():
            node = forest.get(node_id)
            changed = (
                node_id in touched
                or parents[node_id] != forest.parent_of(node_id)
                or levels.levels[node_id] != node.depth
                or sort_orders[node_id] != node.sort_order
            )
            if changed:
                updates.append(
                    NodeUpdate(
                        node_id=node_id,
                        parent_id=parents[node_id],
                        depth=levels.levels[node_id],
                        sort_order=sort_orders[node_id],
                    )
                )

        logger.debug(
            f"Reorder planned: {len(changes)} changes, {len(updates)} node updates"
        )
        return EngineResult.success(ReorderOutcome(count=len(changes), updates=updates))

    @staticmethod
    def _resolve_levels(parents: Dict[str, Optional[str]]) -> "_Levels":
        levels: Dict[str, int] = {}
        for start in parents:
            path: List[str] = []
            current: Optional[str] = start
            while current is not None and current not in levels:
                if current in path:
                    return _Levels(levels, violation_node=current)
                path.append(current)
                current = parents[current]
            base = -1 if current is None else levels[current]
            for offset, node_id in enumerate(reversed(path), start=1):
                levels[node_id] = base + offset
        return _Levels(levels)


@dataclass
class _Levels:
    levels: Dict[str, int]
    violation_node: Optional[str] = None


__all__ = ["ReorderEngine", "ReorderChange", "ReorderOutcome", "NodeUpdate"]
