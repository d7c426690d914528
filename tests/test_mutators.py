"""
Tests for TaskMutators: write, reconcile, notify.
"""
import asyncio
from datetime import datetime, timezone

import pytest

from taskboard.mutators import ValidationError


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_task_appends_to_column(harness):
    task = asyncio.run(harness.mutators.create_task("Call vendor", column_id="col_todo"))
    assert task is not None
    assert task.position == 2
    assert task.owner_id == "u1"
    assert task.board_id == "b1"
    assert task.id.startswith("task_")

    cached = harness.cache.get_task(task.id)
    assert cached.column_id == "col_todo"
    assert [t.id for t in harness.cache.tasks_in_column("col_todo")][-1] == task.id
    assert harness.notifications[-1].title == "Task created"
    assert harness.notifications[-1].description == '"Call vendor" has been added to your board'


def test_create_task_defaults_to_first_column(harness):
    task = asyncio.run(harness.mutators.create_task("  Plan  "))
    assert task.column_id == "col_todo"
    assert task.title == "Plan"


def test_create_task_keeps_details(harness):
    due = datetime(2025, 3, 5, tzinfo=timezone.utc)
    task = asyncio.run(harness.mutators.create_task(
        "Plan", column_id="col_doing", description="Agenda", due_date=due, tags=["ops", " ", "ops"],
    ))
    cached = harness.cache.get_task(task.id)
    assert cached.description == "Agenda"
    assert cached.due_date == due
    assert cached.tags == {"ops"}
    assert cached.position == 0


def test_create_task_requires_title(harness):
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.create_task("   "))
    assert harness.store.writes == []


def test_create_task_without_board(harness):
    harness.cache.clear()
    assert asyncio.run(harness.mutators.create_task("x")) is None
    assert harness.store.writes == []


def test_create_task_failure_leaves_cache(harness):
    before = harness.cache.snapshot()
    harness.store.fail_writes = True
    assert asyncio.run(harness.mutators.create_task("x")) is None
    assert harness.cache.snapshot() == before
    assert [(n.title, n.description) for n in harness.errors] == [
        ("Creation Error", "Failed to create task"),
    ]


def test_update_task_fields(harness):
    ok = asyncio.run(harness.mutators.update_task(
        "t2", title="Review Q3 budget", tags=["finance"], completed=True, description="",
    ))
    assert ok
    task = harness.cache.get_task("t2")
    assert task.title == "Review Q3 budget"
    assert task.tags == {"finance"}
    assert task.completed is True
    assert task.description == ""
    assert task.updated_at >= task.created_at
    assert harness.notifications[-1].title == "Task updated"


def test_update_task_tags_are_trimmed(harness):
    assert asyncio.run(harness.mutators.update_task("t2", tags=[" finance ", "", "  ", "ops"]))
    assert harness.cache.get_task("t2").tags == {"finance", "ops"}


def test_update_task_rejects_single_string_tags(harness):
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.update_task("t2", tags="finance"))
    assert harness.store.writes == []
    assert harness.cache.get_task("t2").tags == set()


def test_create_task_rejects_single_string_tags(harness):
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.create_task("Plan", tags="ops"))
    assert harness.store.writes == []


def test_update_task_due_date_from_string(harness):
    asyncio.run(harness.mutators.update_task("t1", due_date="2025-03-05T00:00:00Z"))
    assert harness.cache.get_task("t1").due_date == datetime(2025, 3, 5, tzinfo=timezone.utc)
    asyncio.run(harness.mutators.update_task("t1", due_date=None))
    assert harness.cache.get_task("t1").due_date is None


def test_update_task_rejects_bad_input(harness):
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.update_task("t1", owner_id="u2"))
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.update_task("t1", title=""))
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.update_task("t1", column_id="elsewhere"))
    assert harness.store.writes == []


def test_update_missing_task_reports_error(harness):
    assert asyncio.run(harness.mutators.update_task("ghost", title="x")) is False
    assert harness.errors[-1].title == "Update failed"


def test_delete_task_removes_subtasks(harness):
    assert asyncio.run(harness.mutators.delete_task("t1"))
    assert harness.cache.get_task("t1") is None
    assert harness.cache.subtasks_for("t1") == []
    assert harness.notifications[-1].title == "Task deleted"


def test_delete_failure_keeps_task(harness):
    harness.store.fail_writes = True
    assert asyncio.run(harness.mutators.delete_task("t1")) is False
    assert harness.cache.get_task("t1") is not None
    assert harness.errors[-1].description == "Failed to delete task"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Subtasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_subtask_appends(harness):
    subtask = asyncio.run(harness.mutators.create_subtask("t1", "Review"))
    assert subtask.position == 2
    assert subtask.completed is False
    assert [s.id for s in harness.cache.subtasks_for("t1")][-1] == subtask.id
    assert harness.cache.subtask_progress("t1") == (1, 3)
    assert harness.notifications[-1].title == "Subtask added"


def test_create_subtask_requires_title(harness):
    with pytest.raises(ValidationError):
        asyncio.run(harness.mutators.create_subtask("t1", ""))


def test_create_subtask_failure(harness):
    harness.store.fail_writes = True
    assert asyncio.run(harness.mutators.create_subtask("t1", "Review")) is None
    assert harness.cache.subtask_progress("t1") == (1, 2)
    assert harness.errors[-1].title == "Creation failed"


def test_toggle_subtask(harness):
    assert asyncio.run(harness.mutators.toggle_subtask("s1", True))
    assert harness.cache.get_subtask("s1").completed is True
    assert harness.cache.subtask_progress("t1") == (2, 2)
    assert asyncio.run(harness.mutators.toggle_subtask("s2", False))
    assert harness.cache.subtask_progress("t1") == (1, 2)
    writes = [w for w in harness.store.writes if w[0] == "subtasks"]
    assert writes[0][2] == ("s1", {"completed": 1})


def test_delete_subtask(harness):
    assert asyncio.run(harness.mutators.delete_subtask("s2"))
    assert [s.id for s in harness.cache.subtasks_for("t1")] == ["s1"]
    assert harness.notifications[-1].title == "Subtask deleted"
