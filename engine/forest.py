# ============================================================================
# TEMPLATE & TASK FORESTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Read models over flat template/task collections
# PURPOSE: Sibling ordering, parent resolution and deterministic traversal
# CREATED: 18 OCT 2026
# ============================================================================
"""
Forests

A forest is built from the flat rows of ONE job definition (templates) or
ONE job instance / group (tasks). Construction resolves every parent
reference; a reference pointing outside the loaded set is surfaced as
ORPHAN_TEMPLATE / ORPHAN_TASK rather than silently dropped.

Sibling order:
    TemplateForest: sort_order, then relative_days, then load order
    TaskForest:     sort_order, then task_number, then load order

Traversal:
    pre_order()      depth-first, every parent strictly before its subtree
    capture_order()  (tasks only) level, then task_number, then load order
"""

import math
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from core.models import Task, TaskTemplate
from engine.results import EngineError, EngineResult, ErrorCode, Violation

N = TypeVar("N", TaskTemplate, Task)


class _Forest(Generic[N]):
    """Shared structure for template and task forests."""

    id_field: str = ""
    parent_field: str = ""
    orphan_code: ErrorCode = ErrorCode.ORPHAN_TASK
    label: str = "node"

    def __init__(self, nodes: Iterable[N]):
        self._nodes: Dict[str, N] = {}
        self._position: Dict[str, int] = {}
        for index, node in enumerate(nodes):
            node_id = self.node_id(node)
            if node_id in self._nodes:
                raise ValueError(f"Duplicate {self.label} id {node_id}")
            self._nodes[node_id] = node
            self._position[node_id] = index

        self._children: Dict[Optional[str], List[str]] = {}
        self._levels: Dict[str, int] = {}
        self._index_children()
        self._resolve_levels()

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------

    @classmethod
    def build(cls, nodes: Iterable[N]) -> EngineResult["_Forest[N]"]:
        """Build a forest, returning an orphan violation instead of raising."""
        try:
            return EngineResult.success(cls(nodes))
        except EngineError as e:
            return EngineResult.from_violation(e.violation)

    def _orphan(self, node_id: str, message: str) -> EngineError:
        return EngineError(Violation(self.orphan_code, message, node_id))

    def _index_children(self) -> None:
        for node_id, node in self._nodes.items():
            parent_id = self.parent_id(node)
            if parent_id is not None and parent_id not in self._nodes:
                raise self._orphan(
                    node_id,
                    f"{self.label.capitalize()} {node_id} references parent "
                    f"{parent_id} outside this set",
                )
            self._children.setdefault(parent_id, []).append(node_id)

        for parent_id, child_ids in self._children.items():
            child_ids.sort(key=lambda cid: self.sibling_key(self._nodes[cid]) + (self._position[cid],))

    def _resolve_levels(self) -> None:
        """Structural level of every node; nodes unreachable from a root are orphans."""
        frontier: List[Tuple[str, int]] = [(cid, 0) for cid in self._children.get(None, [])]
        while frontier:
            node_id, level = frontier.pop()
            self._levels[node_id] = level
            frontier.extend((cid, level + 1) for cid in self._children.get(node_id, []))

        for node_id in self._nodes:
            if node_id not in self._levels:
                raise self._orphan(
                    node_id,
                    f"{self.label.capitalize()} {node_id} is not reachable from any root "
                    f"(cyclic parent references)",
                )

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    def node_id(self, node: N) -> str:
        return getattr(node, self.id_field)

    def parent_id(self, node: N) -> Optional[str]:
        return getattr(node, self.parent_field)

    def sibling_key(self, node: N) -> tuple:
        raise NotImplementedError

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[N]:
        return iter(self._nodes.values())

    def get(self, node_id: str) -> Optional[N]:
        return self._nodes.get(node_id)

    def ids(self) -> List[str]:
        return list(self._nodes)

    def depth_of(self, node_id: str) -> Optional[int]:
        """Stored depth, or None for unknown ids."""
        node = self._nodes.get(node_id)
        return node.depth if node is not None else None

    def parent_of(self, node_id: str) -> Optional[str]:
        node = self._nodes.get(node_id)
        return self.parent_id(node) if node is not None else None

    def level_of(self, node_id: str) -> int:
        """Depth implied by the parent chain (equals stored depth in consistent data)."""
        return self._levels[node_id]

    # ------------------------------------------------------------------
    # traversal
    # ------------------------------------------------------------------

    def children_of(self, parent_id: Optional[str]) -> List[N]:
        """Ordered children of ``parent_id`` (None for roots)."""
        return [self._nodes[cid] for cid in self._children.get(parent_id, [])]

    def roots(self) -> List[N]:
        return self.children_of(None)

    def pre_order(self) -> List[N]:
        """Depth-first order; each parent appears before all of its descendants."""
        return self.descendants_of(None)

    def descendants_of(self, node_id: Optional[str]) -> List[N]:
        """All nodes below ``node_id`` (None for the whole forest), pre-order."""
        result: List[N] = []
        stack = list(reversed(self._children.get(node_id, [])))
        while stack:
            current = stack.pop()
            result.append(self._nodes[current])
            stack.extend(reversed(self._children.get(current, [])))
        return result

    def has_children(self, node_id: str) -> bool:
        return bool(self._children.get(node_id))

    def depth_consistency_errors(self) -> List[str]:
        """Ids whose stored depth disagrees with their parent chain."""
        return [
            node_id
            for node_id, node in self._nodes.items()
            if node.depth != self._levels[node_id]
        ]


class TemplateForest(_Forest[TaskTemplate]):
    """Navigable forest over one job definition's templates."""

    id_field = "template_id"
    parent_field = "parent_template_id"
    orphan_code = ErrorCode.ORPHAN_TEMPLATE
    label = "template"

    def __init__(self, templates: Iterable[TaskTemplate]):
        templates = list(templates)
        definitions = {t.definition_id for t in templates}
        if len(definitions) > 1:
            raise ValueError(
                f"TemplateForest expects templates of one definition, got {sorted(definitions)}"
            )
        self.definition_id: Optional[str] = next(iter(definitions), None)
        super().__init__(templates)

    def sibling_key(self, node: TaskTemplate) -> tuple:
        return (node.sort_order, node.relative_days)


class TaskForest(_Forest[Task]):
    """Navigable forest over a set of tasks (usually one job instance)."""

    id_field = "task_id"
    parent_field = "parent_task_id"
    orphan_code = ErrorCode.ORPHAN_TASK
    label = "task"

    def sibling_key(self, node: Task) -> tuple:
        number = node.task_number if node.task_number is not None else math.inf
        return (node.sort_order, number)

    def capture_order(self) -> List[Task]:
        """Parent-before-child order by level, then task_number, then load order."""
        def key(task: Task) -> tuple:
            number = task.task_number if task.task_number is not None else math.inf
            return (self._levels[task.task_id], number, self._position[task.task_id])

        return sorted(self._nodes.values(), key=key)


__all__ = ["TemplateForest", "TaskForest"]
