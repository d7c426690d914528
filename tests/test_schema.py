"""
Tests for the board data model: tag encoding, flag and date parsing, records.
"""
from datetime import datetime, timedelta, timezone

from taskboard.schema import (
    Board,
    Column,
    Notification,
    Severity,
    Subtask,
    Task,
    decode_tags,
    encode_tags,
    make_id,
    parse_bool,
    parse_datetime,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tags
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_tag_round_trip():
    assert decode_tags(encode_tags({"urgent", "q3"})) == {"urgent", "q3"}


def test_encode_tags_is_sorted_json():
    assert encode_tags(["q3", "urgent", "q3"]) == '["q3", "urgent"]'


def test_decode_empty_or_absent():
    assert decode_tags(None) == set()
    assert decode_tags("") == set()
    assert decode_tags("[]") == set()


def test_decode_malformed_is_empty():
    assert decode_tags("not json") == set()
    assert decode_tags('{"a": 1}') == set()
    assert decode_tags("42") == set()


def test_decode_ignores_non_string_entries():
    assert decode_tags('["a", 3, null, "b"]') == {"a", "b"}


def test_decode_accepts_lists():
    assert decode_tags(["x", "y"]) == {"x", "y"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scalars
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_parse_bool_variants():
    assert parse_bool(True)
    assert parse_bool(1)
    assert parse_bool("1")
    assert not parse_bool(0)
    assert not parse_bool("0")
    assert not parse_bool(None)
    assert not parse_bool("")
    assert parse_bool("true")


def test_parse_datetime_z_suffix():
    dt = parse_datetime("2025-03-05T10:00:00Z")
    assert dt == datetime(2025, 3, 5, 10, 0, tzinfo=timezone.utc)


def test_parse_datetime_naive_is_utc():
    assert parse_datetime("2025-03-05T10:00:00").tzinfo == timezone.utc
    assert parse_datetime(None) is None


def test_make_id_format():
    tid = make_id("task")
    parts = tid.split("_")
    assert parts[0] == "task"
    assert parts[1].isdigit()
    assert len(parts[2]) == 8


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_task_record_encodes_tags_and_flags():
    task = Task(id="t1", title="Ship", column_id="c1", board_id="b1", owner_id="u1",
                completed=True, tags={"b", "a"})
    record = task.to_record()
    assert record["tags"] == '["a", "b"]'
    assert record["completed"] == 1
    assert record["description"] is None


def test_task_from_store_row():
    row = {
        "id": "t1", "title": "Ship", "description": None, "column_id": "c1",
        "board_id": "b1", "owner_id": "u1", "position": 3, "due_date": "2025-03-05T00:00:00+00:00",
        "completed": "1", "tags": '["urgent"]',
        "created_at": "2025-01-01T00:00:00+00:00", "updated_at": "2025-01-02T00:00:00+00:00",
    }
    task = Task.from_dict(row)
    assert task.position == 3
    assert task.completed is True
    assert task.tags == {"urgent"}
    assert task.description == ""
    assert task.due_date.day == 5


def test_task_updated_at_never_before_created_at():
    created = datetime(2025, 1, 2, tzinfo=timezone.utc)
    row = {
        "id": "t1", "title": "x", "column_id": "c1", "board_id": "b1",
        "created_at": created.isoformat(),
        "updated_at": (created - timedelta(days=1)).isoformat(),
    }
    task = Task.from_dict(row)
    assert task.updated_at >= task.created_at


def test_task_with_bad_tags_still_loads():
    task = Task.from_dict({"id": "t1", "title": "x", "column_id": "c1", "board_id": "b1",
                           "tags": "[broken"})
    assert task.tags == set()


def test_board_column_subtask_records():
    board = Board.from_dict(Board(id="b1", name="Work", owner_id="u1", is_shared=True).to_record())
    assert board.is_shared and not board.is_archived

    column = Column.from_dict({"id": "c1", "name": "To Do", "board_id": "b1", "color": None})
    assert column.color == "#6b7280"
    assert column.position == 0

    subtask = Subtask.from_dict({"id": "s1", "title": "x", "task_id": "t1", "completed": 0})
    assert subtask.completed is False
    assert subtask.to_dict()["completed"] is False


def test_notification_to_dict():
    n = Notification("Update Error", "Failed to move task", Severity.ERROR)
    assert n.to_dict() == {"title": "Update Error", "description": "Failed to move task",
                           "severity": "error"}
