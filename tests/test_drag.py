"""
Tests for DragController: optimistic hover, commit on drop, rollback.
"""
import asyncio

import pytest

from taskboard.drag import DragError, DragState


def test_drop_on_other_column_commits(harness):
    drag = harness.drag
    drag.drag_start("t1")
    assert drag.drag_over("col_doing")
    assert harness.cache.get_task("t1").column_id == "col_doing"

    assert asyncio.run(drag.drag_end("col_doing")) is True
    assert drag.state == DragState.IDLE

    updates = [w for w in harness.store.writes if w[1] == "update"]
    assert len(updates) == 1
    name, _, (task_id, fields) = updates[0]
    assert (name, task_id, fields["column_id"]) == ("tasks", "t1", "col_doing")
    assert "updated_at" in fields

    rows = asyncio.run(harness.store.inner.tasks.list(where={"id": "t1"}))
    assert rows[0]["column_id"] == "col_doing"
    assert harness.cache.get_task("t1").column_id == "col_doing"
    assert harness.errors == []


def test_failed_write_rolls_back(harness):
    drag = harness.drag
    harness.store.fail_writes = True
    drag.drag_start("t1")
    drag.drag_over("col_doing")
    assert harness.cache.get_task("t1").column_id == "col_doing"

    assert asyncio.run(drag.drag_end("col_doing")) is False
    assert harness.cache.get_task("t1").column_id == "col_todo"
    assert [(n.title, n.description) for n in harness.errors] == [
        ("Update Error", "Failed to move task"),
    ]


def test_drop_in_origin_column_writes_nothing(harness):
    drag = harness.drag
    drag.drag_start("t1")
    drag.drag_over("col_doing")
    drag.drag_over("col_todo")
    assert asyncio.run(drag.drag_end("col_todo")) is False
    assert harness.store.writes == []
    assert harness.cache.get_task("t1").column_id == "col_todo"


def test_drop_on_task_uses_its_column(harness):
    drag = harness.drag
    drag.drag_start("t2")
    assert asyncio.run(drag.drag_end("t3")) is True
    assert harness.cache.get_task("t2").column_id == "col_done"


def test_drop_outside_any_target_discards(harness):
    drag = harness.drag
    drag.drag_start("t1")
    assert asyncio.run(drag.drag_end(None)) is False
    assert harness.store.writes == []
    assert drag.state == DragState.IDLE
    assert drag.active_task_id is None


def test_repeated_hover_is_idempotent(harness):
    drag = harness.drag
    drag.drag_start("t1")
    assert drag.drag_over("col_done")
    snap = harness.cache.snapshot()
    assert not drag.drag_over("col_done")
    assert harness.cache.snapshot() == snap


def test_hover_over_unknown_target_ignored(harness):
    drag = harness.drag
    drag.drag_start("t1")
    assert not drag.drag_over("nowhere")
    assert not drag.drag_over(None)
    assert harness.cache.get_task("t1").column_id == "col_todo"


def test_hover_without_drag_does_nothing(harness):
    assert not harness.drag.drag_over("col_doing")
    assert asyncio.run(harness.drag.drag_end("col_doing")) is False
    assert harness.store.writes == []


def test_second_drag_start_rejected(harness):
    drag = harness.drag
    drag.drag_start("t1")
    with pytest.raises(DragError):
        drag.drag_start("t2")
    assert drag.active_task_id == "t1"


def test_positions_untouched_by_move(harness):
    drag = harness.drag
    drag.drag_start("t2")
    asyncio.run(drag.drag_end("col_done"))
    moved = harness.cache.get_task("t2")
    assert moved.position == 1
    assert [t.id for t in harness.cache.tasks_in_column("col_done")] == ["t3", "t2"]
