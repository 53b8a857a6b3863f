# ============================================================================
# JOB INSTANCE SERVICE TESTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Tests - Instance-side business rules
# PURPOSE: Verify JobInstanceService with mocked repositories
# CREATED: 18 OCT 2026
# ============================================================================
"""
JobInstanceService Tests

Unit tests with mocked repos: tasks, statuses, reorder and capture.

Run with:
    pytest tests/test_instance_service.py -v
"""

import asyncio
import itertools
from contextlib import asynccontextmanager
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import StatusDefaults
from core.contracts import Priority
from core.models import GroupStatusCatalog, JobInstance, Task
from engine import EngineError, ErrorCode, ReorderChange
from services.instance_service import JobInstanceService


# ============================================================================
# HELPERS
# ============================================================================

class _FakeConnection:
    """Stands in for an AsyncConnection inside transaction()."""

    @asynccontextmanager
    async def transaction(self):
        yield self


def _make_pool():
    conn = _FakeConnection()
    pool = MagicMock()

    @asynccontextmanager
    async def connection():
        yield conn

    pool.connection = connection
    return pool, conn


def _make_instance(actual_start=date(2025, 3, 1)):
    return JobInstance(
        instance_id="inst-1",
        definition_id="def-1",
        group_id="grp-1",
        fiscal_year=2025,
        instance_number=2,
        actual_start=actual_start,
    )


def _make_task(task_id, parent=None, depth=0, task_number=1, status="not_started",
               due_date=None, sort_order=0, instance_id="inst-1"):
    return Task(
        task_id=task_id,
        group_id="grp-1",
        instance_id=instance_id,
        parent_task_id=parent,
        depth=depth,
        task_number=task_number,
        title=f"Task {task_id}",
        due_date=due_date,
        status=status,
        sort_order=sort_order,
        created_by="user-1",
    )


def _make_catalog():
    return GroupStatusCatalog.from_tuples("grp-1", list(StatusDefaults().catalog))


def _build_service():
    """Build a JobInstanceService with all repos mocked."""
    pool, conn = _make_pool()
    counter = itertools.count(1)
    svc = JobInstanceService(pool, id_factory=lambda: f"id-{next(counter)}")

    # Replace repos with async mocks
    svc.definition_repo = AsyncMock()
    svc.template_repo = AsyncMock()
    svc.instance_repo = AsyncMock()
    svc.task_repo = AsyncMock()
    svc.status_repo = AsyncMock()
    svc.status_repo.get_catalog = AsyncMock(return_value=_make_catalog())

    return svc, conn


# ============================================================================
# INSTANCES
# ============================================================================

class TestInstances:

    def test_get_by_key(self):
        svc, _ = _build_service()
        instance = _make_instance()
        svc.instance_repo.get_by_key = AsyncMock(return_value=instance)

        result = asyncio.run(svc.get_instance_by_key("grp-1", "ENT-2"))

        assert result is instance
        svc.instance_repo.get_by_key.assert_awaited_once_with("grp-1", "ENT", 2)

    def test_get_by_malformed_key(self):
        svc, _ = _build_service()
        with pytest.raises(ValueError, match="PREFIX-NUMBER"):
            asyncio.run(svc.get_instance_by_key("grp-1", "ent2"))
        svc.instance_repo.get_by_key.assert_not_awaited()

    def test_get_by_unknown_key(self):
        svc, _ = _build_service()
        svc.instance_repo.get_by_key = AsyncMock(return_value=None)
        with pytest.raises(KeyError):
            asyncio.run(svc.get_instance_by_key("grp-1", "ENT-99"))

    def test_task_tree_in_pre_order(self):
        svc, _ = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=_make_instance())
        svc.task_repo.list_by_instance = AsyncMock(return_value=[
            _make_task("a", task_number=1),
            _make_task("b", task_number=2),
            _make_task("a1", parent="a", depth=1, task_number=3),
        ])

        tree = asyncio.run(svc.list_task_tree("inst-1"))

        assert [t.task_id for t in tree] == ["a", "a1", "b"]


# ============================================================================
# CAPTURE
# ============================================================================

class TestCapture:

    def test_capture_offsets_from_actual_start(self):
        svc, conn = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=_make_instance())
        svc.task_repo.list_by_instance = AsyncMock(return_value=[
            _make_task("t1", due_date=date(2025, 3, 20)),
        ])

        outcome = asyncio.run(svc.capture("inst-1", "user-1", "Ceremony v2", prefix="cer"))

        assert outcome.templates[0].relative_days == 19
        assert outcome.definition.prefix == "CER"
        assert outcome.definition.group_id == "grp-1"
        svc.definition_repo.create.assert_awaited_once_with(outcome.definition, conn=conn)
        svc.template_repo.create_many.assert_awaited_once_with(outcome.templates, conn=conn)
        svc.instance_repo.link_definition.assert_awaited_once_with(
            "inst-1", outcome.definition.definition_id, conn=conn
        )
        svc.task_repo.update.assert_not_awaited()

    def test_capture_without_actual_start_uses_today(self):
        svc, _ = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=_make_instance(actual_start=None))
        svc.task_repo.list_by_instance = AsyncMock(return_value=[
            _make_task("t1", due_date=date(2025, 6, 11)),
        ])

        outcome = asyncio.run(
            svc.capture("inst-1", "user-1", "Copy", today=date(2025, 6, 1))
        )

        assert outcome.base_date == date(2025, 6, 1)
        assert outcome.templates[0].relative_days == 10

    def test_capture_missing_instance(self):
        svc, _ = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=None)
        with pytest.raises(KeyError):
            asyncio.run(svc.capture("nope", "user-1", "Copy"))
        svc.definition_repo.create.assert_not_awaited()

    def test_capture_rejects_unknown_meta(self):
        svc, _ = _build_service()
        with pytest.raises(ValueError):
            asyncio.run(svc.capture("inst-1", "user-1", "Copy", group_id="other"))


# ============================================================================
# TASKS
# ============================================================================

class TestTasks:

    def test_create_defaults_to_initial_status(self):
        svc, conn = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=_make_instance())
        svc.task_repo.list_by_instance = AsyncMock(return_value=[_make_task("a")])
        calls = []
        svc.task_repo.lock_task_numbers = AsyncMock(
            side_effect=lambda *args: calls.append(("lock", args))
        )
        svc.task_repo.next_task_number = AsyncMock(
            side_effect=lambda *args: calls.append(("next", args)) or 6
        )

        task = asyncio.run(svc.create_task(
            "grp-1", "Extra step", "user-1",
            parent_task_id="a",
            instance_id="inst-1",
            due_date="2025-03-09",
        ))

        assert task.status == "not_started"
        assert task.task_number == 6
        assert task.depth == 1
        assert task.due_date == date(2025, 3, 9)
        assert calls == [("lock", ("inst-1", conn)), ("next", ("inst-1", conn))]
        svc.task_repo.list_by_instance.assert_awaited_once_with("inst-1", conn=conn)
        svc.task_repo.list_by_group.assert_not_awaited()
        svc.task_repo.create.assert_awaited_once_with(task, conn=conn)

    def test_create_under_task_of_other_instance(self):
        svc, _ = _build_service()
        svc.instance_repo.get = AsyncMock(return_value=_make_instance())
        svc.task_repo.list_by_instance = AsyncMock(return_value=[_make_task("a1")])
        svc.task_repo.list_by_group = AsyncMock(return_value=[
            _make_task("a1"),
            _make_task("b1", instance_id="inst-2"),
        ])

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.create_task(
                "grp-1", "X", "user-1", parent_task_id="b1", instance_id="inst-1",
            ))

        assert exc_info.value.code == ErrorCode.PARENT_NOT_FOUND
        svc.task_repo.lock_task_numbers.assert_not_awaited()
        svc.task_repo.create.assert_not_awaited()

    def test_freestanding_under_instance_task(self):
        svc, _ = _build_service()
        svc.task_repo.list_by_group = AsyncMock(return_value=[
            _make_task("a1"),
            _make_task("loose", task_number=None, instance_id=None),
        ])

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.create_task("grp-1", "X", "user-1", parent_task_id="a1"))
        assert exc_info.value.code == ErrorCode.PARENT_NOT_FOUND

        task = asyncio.run(svc.create_task("grp-1", "Y", "user-1", parent_task_id="loose"))
        assert task.depth == 1
        assert task.is_freestanding

    def test_create_freestanding_has_no_number(self):
        svc, _ = _build_service()
        svc.task_repo.list_by_group = AsyncMock(return_value=[])

        task = asyncio.run(svc.create_task("grp-1", "Loose end", "user-1"))

        assert task.task_number is None
        assert task.is_freestanding
        svc.task_repo.next_task_number.assert_not_awaited()

    def test_create_with_unknown_status(self):
        svc, _ = _build_service()
        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.create_task("grp-1", "X", "user-1", status="archived"))
        assert exc_info.value.code == ErrorCode.INVALID_STATUS
        svc.task_repo.create.assert_not_awaited()

    def test_create_under_grandchild(self):
        svc, _ = _build_service()
        svc.task_repo.list_by_group = AsyncMock(return_value=[
            _make_task("r", task_number=None, instance_id=None),
            _make_task("c", parent="r", depth=1, task_number=None, instance_id=None),
            _make_task("g", parent="c", depth=2, task_number=None, instance_id=None),
        ])

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.create_task("grp-1", "X", "user-1", parent_task_id="g"))

        assert exc_info.value.code == ErrorCode.DEPTH_EXCEEDED

    def test_status_change_validated_against_catalog(self):
        svc, _ = _build_service()
        svc.task_repo.get = AsyncMock(return_value=_make_task("a"))

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.update_task_status("a", "blocked"))

        assert exc_info.value.code == ErrorCode.INVALID_STATUS
        svc.task_repo.update_status.assert_not_awaited()

    def test_status_change(self):
        svc, conn = _build_service()
        svc.task_repo.get = AsyncMock(return_value=_make_task("a"))

        task = asyncio.run(svc.update_task_status("a", "completed"))

        assert task.status == "completed"
        svc.task_repo.update_status.assert_awaited_once_with("a", "completed", conn=conn)

    def test_priority_change(self):
        svc, _ = _build_service()
        svc.task_repo.get = AsyncMock(return_value=_make_task("a"))
        svc.task_repo.update_priority = AsyncMock(return_value=True)

        task = asyncio.run(svc.update_task_priority("a", "urgent"))

        assert task.priority == Priority.URGENT

    def test_invalid_priority(self):
        svc, _ = _build_service()
        with pytest.raises(ValueError, match="Invalid priority"):
            asyncio.run(svc.update_task_priority("a", "critical"))

    def test_update_task_content(self):
        svc, _ = _build_service()
        svc.task_repo.get = AsyncMock(return_value=_make_task("a"))

        task = asyncio.run(
            svc.update_task("a", {"title": "Renamed", "assignee_id": "u3", "status": "in_progress"})
        )

        assert task.title == "Renamed"
        assert task.assignee_ids == ["u3"]
        assert task.status == "in_progress"
        svc.task_repo.update.assert_awaited_once()

    def test_update_task_rejects_hierarchy_fields(self):
        svc, _ = _build_service()
        with pytest.raises(ValueError):
            asyncio.run(svc.update_task("a", {"parent_task_id": "b"}))

    def test_delete_missing(self):
        svc, _ = _build_service()
        svc.task_repo.delete = AsyncMock(return_value=False)
        with pytest.raises(KeyError):
            asyncio.run(svc.delete_task("ghost"))


# ============================================================================
# REORDER
# ============================================================================

class TestReorderTasks:

    def _with_group(self, svc):
        tasks = [
            _make_task("r", task_number=1),
            _make_task("c", parent="r", depth=1, task_number=2),
            _make_task("g", parent="c", depth=2, task_number=3),
            _make_task("x", task_number=4, sort_order=1),
        ]
        svc.task_repo.get = AsyncMock(side_effect=lambda task_id, conn=None: next(
            (t for t in tasks if t.task_id == task_id), None
        ))
        svc.task_repo.list_by_group = AsyncMock(return_value=tasks)
        return tasks

    def test_move_under_grandchild_rejected(self):
        svc, _ = _build_service()
        self._with_group(svc)

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.reorder_task(ReorderChange(node_id="x", parent_id="g")))

        assert exc_info.value.code == ErrorCode.DEPTH_EXCEEDED
        svc.task_repo.apply_updates.assert_not_awaited()

    def test_move_returns_updated_task(self):
        svc, _ = _build_service()
        self._with_group(svc)

        task = asyncio.run(svc.reorder_task(ReorderChange(node_id="x", parent_id="c")))

        assert task.parent_task_id == "c"
        assert task.depth == 2
        assert task.task_number == 4
        svc.task_repo.apply_updates.assert_awaited_once()

    def test_bulk_is_all_or_nothing(self):
        svc, _ = _build_service()
        self._with_group(svc)

        with pytest.raises(EngineError):
            asyncio.run(svc.reorder_tasks([
                ReorderChange(node_id="x", parent_id="r"),
                ReorderChange(node_id="c", parent_id="c"),
            ]))

        svc.task_repo.apply_updates.assert_not_awaited()

    def test_bulk_empty(self):
        svc, _ = _build_service()

        outcome = asyncio.run(svc.reorder_tasks([]))

        assert outcome.count == 0
        svc.task_repo.get.assert_not_awaited()

    def test_bulk_unknown_first_task(self):
        svc, _ = _build_service()
        self._with_group(svc)

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.reorder_tasks([ReorderChange(node_id="ghost", sort_order=1)]))

        assert exc_info.value.code == ErrorCode.NODE_NOT_FOUND

    def test_bulk_applies_updates(self):
        svc, conn = _build_service()
        self._with_group(svc)

        outcome = asyncio.run(svc.reorder_tasks([
            ReorderChange(node_id="x", parent_id="r"),
            ReorderChange(node_id="c", sort_order=3),
        ]))

        assert outcome.count == 2
        svc.task_repo.apply_updates.assert_awaited_once_with(outcome.updates, conn=conn)

    def test_move_under_task_of_other_instance(self):
        svc, _ = _build_service()
        tasks = [
            _make_task("a1", task_number=1),
            _make_task("a2", task_number=2, sort_order=1),
            _make_task("b1", task_number=1, instance_id="inst-2"),
        ]
        svc.task_repo.get = AsyncMock(return_value=tasks[1])
        svc.task_repo.list_by_group = AsyncMock(return_value=tasks)

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.reorder_task(ReorderChange(node_id="a2", parent_id="b1")))

        assert exc_info.value.code == ErrorCode.PARENT_NOT_FOUND
        assert exc_info.value.violation.node_id == "a2"
        svc.task_repo.apply_updates.assert_not_awaited()

    def test_bulk_rejects_freestanding_under_instance_task(self):
        svc, _ = _build_service()
        tasks = [
            _make_task("a1", task_number=1),
            _make_task("loose", task_number=None, instance_id=None),
        ]
        svc.task_repo.get = AsyncMock(return_value=tasks[0])
        svc.task_repo.list_by_group = AsyncMock(return_value=tasks)

        with pytest.raises(EngineError) as exc_info:
            asyncio.run(svc.reorder_tasks([
                ReorderChange(node_id="a1", sort_order=2),
                ReorderChange(node_id="loose", parent_id="a1"),
            ]))

        assert exc_info.value.code == ErrorCode.PARENT_NOT_FOUND
        svc.task_repo.apply_updates.assert_not_awaited()

    def test_move_within_own_instance_still_allowed(self):
        svc, _ = _build_service()
        tasks = [
            _make_task("a1", task_number=1),
            _make_task("a2", task_number=2, sort_order=1),
            _make_task("b1", task_number=1, instance_id="inst-2"),
        ]
        svc.task_repo.get = AsyncMock(return_value=tasks[1])
        svc.task_repo.list_by_group = AsyncMock(return_value=tasks)

        task = asyncio.run(svc.reorder_task(ReorderChange(node_id="a2", parent_id="a1")))

        assert task.parent_task_id == "a1"
        assert task.instance_id == "inst-1"
