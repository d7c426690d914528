"""
Board and list renderers.

Both consume the same read-only BoardSnapshot and return plain dicts the
JSON server (or any other front end) can serialize directly.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .cache import BoardSnapshot, task_matches
from .schema import DEFAULT_COLUMN_COLOR, Subtask, Task, utc_now


def format_due_date(due: datetime, now: Optional[datetime] = None, with_year: bool = False) -> str:
    """'Today', 'Tomorrow', else 'Mar 5' (or 'Mar 5, 2025' with_year)."""
    now = now or utc_now()
    if now.tzinfo is not None:
        due = due.astimezone(now.tzinfo)
    day = due.date()
    if day == now.date():
        return "Today"
    if day == now.date() + timedelta(days=1):
        return "Tomorrow"
    label = f"{due:%b} {due.day}"
    return f"{label}, {due.year}" if with_year else label


def due_urgency(due: datetime, now: Optional[datetime] = None) -> str:
    """'overdue' (past, not today), 'today' or 'upcoming'."""
    now = now or utc_now()
    if now.tzinfo is not None:
        due = due.astimezone(now.tzinfo)
    if due.date() == now.date():
        return "today"
    if due < now:
        return "overdue"
    return "upcoming"


def _progress(subtasks: List[Subtask]) -> Tuple[int, int]:
    return sum(1 for s in subtasks if s.completed), len(subtasks)


def _subtasks_by_task(snapshot: BoardSnapshot) -> Dict[str, List[Subtask]]:
    grouped: Dict[str, List[Subtask]] = {}
    for subtask in snapshot.subtasks:
        grouped.setdefault(subtask.task_id, []).append(subtask)
    return grouped


class BoardRenderer:
    """Anything that turns a snapshot into a view model."""

    name = ""

    def render(self, snapshot: BoardSnapshot, query: str = "", now: Optional[datetime] = None) -> dict:
        raise NotImplementedError

    @staticmethod
    def _visible_tasks(snapshot: BoardSnapshot, query: str) -> List[Task]:
        return [t for t in snapshot.tasks if task_matches(t, query)]

    @staticmethod
    def _task_entry(task: Task, subtasks: List[Subtask], now: datetime, with_year: bool) -> dict:
        done, total = _progress(subtasks)
        entry = task.to_dict()
        entry["subtasks"] = [s.to_dict() for s in subtasks]
        entry["subtask_progress"] = {"completed": done, "total": total}
        if task.due_date:
            entry["due_label"] = format_due_date(task.due_date, now, with_year=with_year)
            entry["due_urgency"] = due_urgency(task.due_date, now)
        return entry


class KanbanView(BoardRenderer):
    """Columns side by side, each with its tasks and a count badge."""

    name = "board"

    def render(self, snapshot, query="", now=None):
        now = now or utc_now()
        tasks = self._visible_tasks(snapshot, query)
        subtasks = _subtasks_by_task(snapshot)
        columns = []
        for column in snapshot.columns:
            column_tasks = [t for t in tasks if t.column_id == column.id]
            columns.append({
                "id": column.id,
                "name": column.name,
                "color": column.color,
                "position": column.position,
                "count": len(column_tasks),
                "tasks": [
                    self._task_entry(t, subtasks.get(t.id, []), now, with_year=False)
                    for t in column_tasks
                ],
            })
        return {"view": self.name, "board_id": snapshot.board_id,
                "task_count": len(tasks), "columns": columns}


class ListView(BoardRenderer):
    """One row per task with its status column."""

    name = "list"

    def render(self, snapshot, query="", now=None):
        now = now or utc_now()
        tasks = self._visible_tasks(snapshot, query)
        subtasks = _subtasks_by_task(snapshot)
        columns = {c.id: c for c in snapshot.columns}
        rows = []
        for task in tasks:
            column = columns.get(task.column_id)
            row = self._task_entry(task, subtasks.get(task.id, []), now, with_year=True)
            row["status"] = column.name if column else "Unknown"
            row["status_color"] = column.color if column else DEFAULT_COLUMN_COLOR
            rows.append(row)
        return {"view": self.name, "board_id": snapshot.board_id,
                "task_count": len(tasks), "rows": rows}


RENDERERS: Dict[str, BoardRenderer] = {
    KanbanView.name: KanbanView(),
    ListView.name: ListView(),
}
