# ============================================================================
# ENGINE RESULTS & VIOLATIONS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Typed results returned by every engine operation
# PURPOSE: Report failures as values so callers can map them deterministically
# CREATED: 18 OCT 2026
# ============================================================================
"""
Engine Results

Engine operations never raise for domain failures. They return an
EngineResult that is either a success carrying a value, or a failure
carrying a Violation.

Services call ``unwrap()`` before touching storage; unwrap raises
EngineError, which the HTTP layer maps to 400/404.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Failure taxonomy shared by templates and tasks."""
    DEPTH_EXCEEDED = "depth_exceeded"
    SELF_PARENT = "self_parent"
    PARENT_NOT_FOUND = "parent_not_found"
    CYCLE_DETECTED = "cycle_detected"
    ORPHAN_TEMPLATE = "orphan_template"
    ORPHAN_TASK = "orphan_task"
    NODE_NOT_FOUND = "node_not_found"
    HAS_CHILDREN = "has_children"
    INVALID_STATUS = "invalid_status"
    STATUS_IN_USE = "status_in_use"
    NO_INITIAL_STATUS = "no_initial_status"

    @property
    def is_not_found(self) -> bool:
        return self in (ErrorCode.PARENT_NOT_FOUND, ErrorCode.NODE_NOT_FOUND)


@dataclass(frozen=True)
class Violation:
    """A rejected mutation: what rule failed, and on which node."""
    code: ErrorCode
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "node_id": self.node_id,
        }


class EngineError(Exception):
    """Raised by ``EngineResult.unwrap()`` and by services on rejected mutations."""

    def __init__(self, violation: Violation):
        super().__init__(violation.message)
        self.violation = violation

    @property
    def code(self) -> ErrorCode:
        return self.violation.code


@dataclass(frozen=True)
class EngineResult(Generic[T]):
    """
    Outcome of an engine operation.

    Exactly one of ``value`` / ``violation`` is meaningful, selected by ``ok``.
    """
    ok: bool
    value: Optional[T] = None
    violation: Optional[Violation] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "EngineResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        node_id: Optional[str] = None,
    ) -> "EngineResult[T]":
        return cls(ok=False, violation=Violation(code, message, node_id))

    @classmethod
    def from_violation(cls, violation: Violation) -> "EngineResult[T]":
        return cls(ok=False, violation=violation)

    def unwrap(self) -> T:
        """Return the value, or raise EngineError for a failure."""
        if not self.ok:
            raise EngineError(self.violation)
        return self.value


__all__ = ["ErrorCode", "Violation", "EngineError", "EngineResult"]
