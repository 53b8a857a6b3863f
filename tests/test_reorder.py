# ============================================================================
# REORDER ENGINE TESTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Tests - Reparent/resort validation and planning
# PURPOSE: Verify all-or-nothing batches, depth cascade and cycle checks
# CREATED: 18 OCT 2026
# ============================================================================
"""
ReorderEngine Tests

Forest used by most tests:

    r (0)           x (0)
    └── c (1)       └── x1 (1)
        └── g (2)

Run with:
    pytest tests/test_reorder.py -v
"""

from core.models import Task, TaskTemplate
from engine import ReorderChange, ReorderEngine, TaskForest, TemplateForest
from engine.results import ErrorCode


# ============================================================================
# HELPERS
# ============================================================================

def _make_task(task_id, parent=None, depth=0, sort_order=0, task_number=1):
    return Task(
        task_id=task_id,
        group_id="grp-1",
        parent_task_id=parent,
        depth=depth,
        task_number=task_number,
        title=f"Task {task_id}",
        status="not_started",
        sort_order=sort_order,
        created_by="user-1",
    )


def _make_forest():
    return TaskForest([
        _make_task("r", task_number=1),
        _make_task("c", parent="r", depth=1, task_number=2),
        _make_task("g", parent="c", depth=2, task_number=3),
        _make_task("x", sort_order=1, task_number=4),
        _make_task("x1", parent="x", depth=1, task_number=5),
    ])


def _move(node_id, parent_id, **kwargs):
    return ReorderChange(node_id=node_id, parent_id=parent_id, **kwargs)


ENGINE = ReorderEngine()


# ============================================================================
# SINGLE CHANGES
# ============================================================================

class TestReorderOne:

    def test_move_under_grandchild_exceeds_depth(self):
        """A node whose new parent sits at depth 2 is rejected."""
        forest = _make_forest()
        result = ENGINE.reorder_one(forest, _move("x1", "g"))

        assert not result.ok
        assert result.violation.code == ErrorCode.DEPTH_EXCEEDED
        assert forest.get("x1").parent_task_id == "x"
        assert forest.get("x1").depth == 1

    def test_self_parent(self):
        result = ENGINE.reorder_one(_make_forest(), _move("c", "c"))
        assert result.violation.code == ErrorCode.SELF_PARENT

    def test_unknown_parent(self):
        result = ENGINE.reorder_one(_make_forest(), _move("c", "ghost"))
        assert result.violation.code == ErrorCode.PARENT_NOT_FOUND

    def test_unknown_node(self):
        result = ENGINE.reorder_one(_make_forest(), _move("ghost", None))
        assert result.violation.code == ErrorCode.NODE_NOT_FOUND
        assert result.violation.node_id == "ghost"

    def test_move_under_own_descendant(self):
        result = ENGINE.reorder_one(_make_forest(), _move("r", "g"))
        assert result.violation.code == ErrorCode.CYCLE_DETECTED

    def test_move_to_root(self):
        outcome = ENGINE.reorder_one(_make_forest(), _move("c", None)).value
        updates = outcome.by_id()

        assert updates["c"].parent_id is None
        assert updates["c"].depth == 0
        assert updates["g"].depth == 1
        assert updates["g"].parent_id == "c"
        assert "r" not in updates

    def test_subtree_moves_with_parent(self):
        outcome = ENGINE.reorder_one(_make_forest(), _move("x", "r")).value
        updates = outcome.by_id()

        assert outcome.count == 1
        assert updates["x"].parent_id == "r"
        assert updates["x"].depth == 1
        assert updates["x1"].depth == 2
        assert updates["x1"].parent_id == "x"

    def test_subtree_too_deep_after_move(self):
        """x itself fits under c, but its child would land at depth 3."""
        result = ENGINE.reorder_one(_make_forest(), _move("x", "c"))
        assert result.violation.code == ErrorCode.DEPTH_EXCEEDED
        assert result.violation.node_id == "x1"

    def test_sort_order_only_keeps_parent(self):
        change = ReorderChange(node_id="g", sort_order=5)
        assert not change.moves_parent

        outcome = ENGINE.reorder_one(_make_forest(), change).value
        update = outcome.by_id()["g"]
        assert update.parent_id == "c"
        assert update.depth == 2
        assert update.sort_order == 5
        assert len(outcome.updates) == 1

    def test_parent_only_keeps_sort_order(self):
        forest = TaskForest([
            _make_task("a"),
            _make_task("b", sort_order=7),
        ])
        update = ENGINE.reorder_one(forest, _move("b", "a")).value.by_id()["b"]
        assert update.sort_order == 7
        assert update.depth == 1

    def test_apply_to_returns_updated_copies(self):
        forest = _make_forest()
        outcome = ENGINE.reorder_one(forest, _move("x", "r", sort_order=3)).value
        moved = {t.task_id: t for t in outcome.apply_to(forest)}

        assert moved["x"].parent_task_id == "r"
        assert moved["x"].sort_order == 3
        assert moved["x1"].depth == 2
        assert forest.get("x").parent_task_id is None


# ============================================================================
# BATCHES
# ============================================================================

class TestReorderBulk:

    def test_empty_batch_is_noop(self):
        result = ENGINE.reorder_bulk(_make_forest(), [])
        assert result.ok
        assert result.value.count == 0
        assert result.value.updates == []

    def test_one_invalid_change_rejects_batch(self):
        forest = _make_forest()
        result = ENGINE.reorder_bulk(forest, [
            _move("x1", "r"),
            _move("x", "g"),
        ])

        assert not result.ok
        assert result.violation.code == ErrorCode.DEPTH_EXCEEDED
        assert result.value is None
        assert forest.get("x1").parent_task_id == "x"

    def test_changes_validated_against_stored_depths(self):
        """Each change is checked against pre-batch depths; the result is checked too."""
        forest = TaskForest([
            _make_task("a"),
            _make_task("a1", parent="a", depth=1),
            _make_task("b"),
            _make_task("c"),
        ])
        result = ENGINE.reorder_bulk(forest, [
            _move("b", "a1"),
            _move("c", "b"),
        ])
        assert result.violation.code == ErrorCode.DEPTH_EXCEEDED

    def test_chained_moves_within_cap(self):
        forest = TaskForest([_make_task("a"), _make_task("b"), _make_task("c")])
        outcome = ENGINE.reorder_bulk(forest, [
            _move("b", "a"),
            _move("c", "b"),
        ]).value
        updates = outcome.by_id()

        assert outcome.count == 2
        assert updates["b"].depth == 1
        assert updates["c"].depth == 2

    def test_batch_creating_cycle(self):
        forest = TaskForest([_make_task("a"), _make_task("b")])
        result = ENGINE.reorder_bulk(forest, [
            _move("a", "b"),
            _move("b", "a"),
        ])
        assert result.violation.code == ErrorCode.CYCLE_DETECTED

    def test_sibling_resort(self):
        forest = TaskForest([
            _make_task("a", sort_order=0),
            _make_task("b", sort_order=1),
        ])
        outcome = ENGINE.reorder_bulk(forest, [
            ReorderChange(node_id="a", sort_order=1),
            ReorderChange(node_id="b", sort_order=0),
        ]).value
        updates = outcome.by_id()
        assert updates["a"].sort_order == 1
        assert updates["b"].sort_order == 0


# ============================================================================
# TEMPLATES
# ============================================================================

class TestReorderTemplates:

    def test_template_forest_supported(self):
        forest = TemplateForest([
            TaskTemplate(template_id="t1", definition_id="d", title="One"),
            TaskTemplate(template_id="t2", definition_id="d", title="Two", sort_order=1),
        ])
        outcome = ENGINE.reorder_one(forest, _move("t2", "t1")).value
        moved = outcome.apply_to(forest)[0]

        assert moved.template_id == "t2"
        assert moved.parent_template_id == "t1"
        assert moved.depth == 1

    def test_template_not_found(self):
        forest = TemplateForest([TaskTemplate(template_id="t1", definition_id="d", title="One")])
        result = ENGINE.reorder_one(forest, _move("t9", None))
        assert result.violation.code == ErrorCode.NODE_NOT_FOUND
        assert "Template" in result.violation.message
