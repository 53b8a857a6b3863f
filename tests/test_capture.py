# ============================================================================
# CAPTURE ENGINE TESTS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Tests - Task forest -> template forest
# PURPOSE: Verify offsets, structure and round trip through instantiation
# CREATED: 18 OCT 2026
# ============================================================================
"""
CaptureEngine Tests

Run with:
    pytest tests/test_capture.py -v
"""

import itertools
from datetime import date

from core.config import StatusDefaults
from core.contracts import Priority
from core.models import GroupStatusCatalog, JobInstance, Task
from engine import CaptureEngine, InstantiationEngine, TaskForest, TemplateForest
from engine.capture import choose_base_date


# ============================================================================
# HELPERS
# ============================================================================

def _counter_ids(prefix):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def _make_instance(actual_start=date(2025, 3, 1)):
    return JobInstance(
        instance_id="inst-1",
        group_id="grp-1",
        fiscal_year=2025,
        instance_number=3,
        actual_start=actual_start,
    )


def _make_task(task_id, title, due_date=None, parent=None, depth=0, task_number=None,
               **kwargs):
    return Task(
        task_id=task_id,
        group_id="grp-1",
        instance_id="inst-1",
        parent_task_id=parent,
        depth=depth,
        task_number=task_number,
        title=title,
        due_date=due_date,
        status="in_progress",
        created_by="user-1",
        **kwargs,
    )


def _capture(tasks, base_date=date(2025, 3, 1), instance=None, **meta):
    engine = CaptureEngine(id_factory=_counter_ids("tpl"))
    definition_meta = {"group_id": "grp-1", "name": "Captured"}
    definition_meta.update(meta)
    return engine.capture(TaskForest(tasks), base_date, definition_meta, instance=instance)


# ============================================================================
# OFFSETS
# ============================================================================

class TestCaptureOffsets:

    def test_offset_from_actual_start(self):
        """actual_start 2025-03-01, due 2025-03-20 -> +19 days."""
        outcome = _capture([_make_task("t", "Rehearsal", due_date=date(2025, 3, 20))]).value
        assert outcome.templates[0].relative_days == 19

    def test_missing_due_date_is_zero(self):
        outcome = _capture([_make_task("t", "Whenever")]).value
        assert outcome.templates[0].relative_days == 0

    def test_due_before_base_is_negative(self):
        outcome = _capture([_make_task("t", "Early", due_date=date(2025, 2, 26))]).value
        assert outcome.templates[0].relative_days == -3

    def test_base_date_prefers_actual_start(self):
        assert choose_base_date(_make_instance(), date(2030, 1, 1)) == date(2025, 3, 1)

    def test_base_date_falls_back_to_today(self):
        instance = _make_instance(actual_start=None)
        assert choose_base_date(instance, date(2030, 1, 1)) == date(2030, 1, 1)
        assert choose_base_date(None, date(2030, 1, 1)) == date(2030, 1, 1)


# ============================================================================
# STRUCTURE
# ============================================================================

class TestCaptureStructure:

    def test_parent_mapping_and_sort_order(self):
        tasks = [
            _make_task("b", "Child", parent="a", depth=1, task_number=2),
            _make_task("c", "Second root", task_number=3),
            _make_task("a", "First root", task_number=1),
        ]
        outcome = _capture(tasks).value
        by_title = {t.title: t for t in outcome.templates}

        assert by_title["Child"].parent_template_id == by_title["First root"].template_id
        assert by_title["Child"].depth == 1
        assert [t.title for t in outcome.templates] == ["First root", "Second root", "Child"]
        assert [t.sort_order for t in outcome.templates] == [0, 1, 2]

    def test_definition_meta_applied(self):
        outcome = _capture([], prefix="ent", category="events").value
        definition = outcome.definition
        assert definition.definition_id == "tpl-1"
        assert definition.group_id == "grp-1"
        assert definition.prefix == "ENT"
        assert definition.category == "events"
        assert outcome.templates == []

    def test_copies_assignees_and_priority(self):
        outcome = _capture([
            _make_task("t", "Call", assignee_ids=["u9"], priority=Priority.IMPORTANT),
        ]).value
        template = outcome.templates[0]
        assert template.default_assignee_ids == ["u9"]
        assert template.default_priority == Priority.IMPORTANT

    def test_source_not_mutated(self):
        tasks = [_make_task("t", "Call", due_date=date(2025, 3, 2), task_number=1)]
        snapshot = [t.model_dump() for t in tasks]
        instance = _make_instance()

        outcome = _capture(tasks, instance=instance).value

        assert [t.model_dump() for t in tasks] == snapshot
        assert instance.definition_id is None
        assert outcome.linked_instance.definition_id == outcome.definition.definition_id


# ============================================================================
# ROUND TRIP
# ============================================================================

class TestRoundTrip:

    def test_instantiate_captured_definition_reproduces_due_dates(self):
        base = date(2025, 3, 1)
        tasks = [
            _make_task("a", "Kickoff", due_date=date(2025, 3, 1), task_number=1),
            _make_task("b", "Invite", due_date=date(2025, 3, 20), parent="a", depth=1,
                       task_number=2),
            _make_task("c", "Confirm", due_date=date(2025, 2, 25), parent="b", depth=2,
                       task_number=3),
            _make_task("d", "Wrap up", task_number=4),
        ]
        captured = _capture(tasks, base_date=base).value

        catalog = GroupStatusCatalog.from_tuples("grp-1", list(StatusDefaults().catalog))
        engine = InstantiationEngine(id_factory=_counter_ids("new"))
        rebuilt = engine.instantiate(
            TemplateForest(captured.templates),
            base,
            "user-2",
            group_id="grp-1",
            catalog=catalog,
            fiscal_year=2026,
        ).value

        original = {t.title: t for t in tasks}
        copies = {t.title: t for t in rebuilt.tasks}
        assert set(copies) == set(original)
        for title, task in original.items():
            if task.due_date is not None:
                assert copies[title].due_date == task.due_date
            assert copies[title].depth == task.depth
        assert copies["Wrap up"].due_date == base
        assert copies["Invite"].parent_task_id == copies["Kickoff"].task_id
        assert copies["Confirm"].parent_task_id == copies["Invite"].task_id
