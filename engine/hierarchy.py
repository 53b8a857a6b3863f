# ============================================================================
# HIERARCHY POLICY
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Pure parent/child validation
# PURPOSE: Depth, self-parent, parent-existence and cycle rules
# CREATED: 18 OCT 2026
# ============================================================================
"""
Hierarchy Policy

Pure validation shared by templates and tasks. Every mutation that sets
a parent runs these checks before anything is written.

    compute_depth(None)  -> 0
    compute_depth(d)     -> d + 1
    validate_depth(3)    -> DEPTH_EXCEEDED (cap is 2)
"""

from typing import Callable, Container, Optional

from core.contracts import MAX_DEPTH
from engine.results import EngineResult, ErrorCode


class HierarchyPolicy:
    """
    Depth and parentage rules.

    ``max_depth`` defaults to the hard cap; it may be configured lower
    but never higher.
    """

    def __init__(self, max_depth: int = MAX_DEPTH):
        if max_depth < 0 or max_depth > MAX_DEPTH:
            raise ValueError(f"max_depth must be between 0 and {MAX_DEPTH}, got {max_depth}")
        self.max_depth = max_depth

    @staticmethod
    def compute_depth(parent_depth: Optional[int]) -> int:
        """Depth a child of ``parent_depth`` must have (0 for roots)."""
        if parent_depth is None:
            return 0
        return parent_depth + 1

    def validate_depth(
        self,
        depth: int,
        node_id: Optional[str] = None,
    ) -> EngineResult[int]:
        if depth > self.max_depth:
            return EngineResult.failure(
                ErrorCode.DEPTH_EXCEEDED,
                f"Maximum depth ({self.max_depth + 1} levels) exceeded",
                node_id,
            )
        return EngineResult.success(depth)

    @staticmethod
    def validate_not_self_parent(
        node_id: str,
        proposed_parent_id: Optional[str],
    ) -> EngineResult[None]:
        if proposed_parent_id is not None and node_id == proposed_parent_id:
            return EngineResult.failure(
                ErrorCode.SELF_PARENT,
                f"Node {node_id} cannot be its own parent",
                node_id,
            )
        return EngineResult.success()

    @staticmethod
    def validate_parent_exists(
        parent_id: Optional[str],
        lookup: Container[str],
        node_id: Optional[str] = None,
    ) -> EngineResult[None]:
        """``lookup`` is the set of ids the parent must belong to."""
        if parent_id is not None and parent_id not in lookup:
            return EngineResult.failure(
                ErrorCode.PARENT_NOT_FOUND,
                f"Parent {parent_id} not found",
                node_id,
            )
        return EngineResult.success()

    @staticmethod
    def validate_not_descendant(
        node_id: str,
        proposed_parent_id: Optional[str],
        parent_of: Callable[[str], Optional[str]],
    ) -> EngineResult[None]:
        """
        Reject parenting a node under one of its own descendants.

        Walks up from the proposed parent via ``parent_of``. The walk is
        bounded so corrupt stored cycles also terminate.
        """
        current = proposed_parent_id
        steps = 0
        while current is not None and steps <= MAX_DEPTH + 1:
            if current == node_id:
                return EngineResult.failure(
                    ErrorCode.CYCLE_DETECTED,
                    f"Node {proposed_parent_id} is a descendant of {node_id}",
                    node_id,
                )
            current = parent_of(current)
            steps += 1
        return EngineResult.success()

    def check_parent(
        self,
        node_id: Optional[str],
        proposed_parent_id: Optional[str],
        depth_of: Callable[[str], Optional[int]],
        parent_of: Optional[Callable[[str], Optional[str]]] = None,
    ) -> EngineResult[int]:
        """
        Run every rule for one proposed (node, parent) pair.

        ``depth_of`` returns the stored depth of an id, or None when the id
        is unknown. Returns the node's new depth on success.
        """
        if node_id is not None:
            result = self.validate_not_self_parent(node_id, proposed_parent_id)
            if not result.ok:
                return EngineResult.from_violation(result.violation)

        if proposed_parent_id is None:
            return self.validate_depth(0, node_id)

        parent_depth = depth_of(proposed_parent_id)
        if parent_depth is None:
            return EngineResult.failure(
                ErrorCode.PARENT_NOT_FOUND,
                f"Parent {proposed_parent_id} not found",
                node_id,
            )

        if node_id is not None and parent_of is not None:
            result = self.validate_not_descendant(node_id, proposed_parent_id, parent_of)
            if not result.ok:
                return EngineResult.from_violation(result.violation)

        return self.validate_depth(self.compute_depth(parent_depth), node_id)


default_policy = HierarchyPolicy()

compute_depth = HierarchyPolicy.compute_depth
validate_not_self_parent = HierarchyPolicy.validate_not_self_parent
validate_parent_exists = HierarchyPolicy.validate_parent_exists


def validate_depth(depth: int, node_id: Optional[str] = None) -> EngineResult[int]:
    """Module-level shortcut using the hard cap."""
    return default_policy.validate_depth(depth, node_id)


__all__ = [
    "HierarchyPolicy",
    "default_policy",
    "compute_depth",
    "validate_depth",
    "validate_not_self_parent",
    "validate_parent_exists",
]
