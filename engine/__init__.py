# ============================================================================
# ENGINE MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Pure hierarchy engine
# PURPOSE: Validation, traversal, instantiation, capture and reorder
# CREATED: 18 OCT 2026
# ============================================================================
"""
Engine Module

Pure, storage-free logic over template and task forests. Every operation
returns an EngineResult; services unwrap it before writing anything.

Usage:
    from engine import TemplateForest, InstantiationEngine

    forest = TemplateForest(templates)
    outcome = InstantiationEngine().instantiate(
        forest, "2026-04-01", actor_id, group_id=g, catalog=c, fiscal_year=2026,
    ).unwrap()
"""

from engine.results import ErrorCode, Violation, EngineError, EngineResult
from engine.hierarchy import HierarchyPolicy, default_policy
from engine.forest import TemplateForest, TaskForest
from engine.instantiation import InstantiationEngine, InstantiationOutcome, uuid_factory
from engine.capture import CaptureEngine, CaptureOutcome, choose_base_date
from engine.reorder import ReorderEngine, ReorderChange, ReorderOutcome, NodeUpdate

__all__ = [
    # Results
    "ErrorCode",
    "Violation",
    "EngineError",
    "EngineResult",
    # Policy
    "HierarchyPolicy",
    "default_policy",
    # Forests
    "TemplateForest",
    "TaskForest",
    # Engines
    "InstantiationEngine",
    "InstantiationOutcome",
    "uuid_factory",
    "CaptureEngine",
    "CaptureOutcome",
    "choose_base_date",
    "ReorderEngine",
    "ReorderChange",
    "ReorderOutcome",
    "NodeUpdate",
]
