"""
Board state cache.

Holds the columns, tasks and subtasks of the board currently on screen.
Groupings (tasks per column, subtasks per task) are derived on read so
they can never drift from the keyed collections. No I/O happens here.
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .schema import Column, Subtask, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardSnapshot:
    """Read-only view of the cache handed to renderers."""
    board_id: Optional[str]
    columns: Tuple[Column, ...]
    tasks: Tuple[Task, ...]
    subtasks: Tuple[Subtask, ...]


def task_matches(task: Task, query: str) -> bool:
    """Case-insensitive substring match on title, description and tags."""
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return (
        needle in task.title.lower()
        or needle in (task.description or "").lower()
        or any(needle in tag.lower() for tag in task.tags)
    )


def _by_position(items: Iterable) -> List:
    # sorted() is stable, so equal positions keep load (creation) order
    return sorted(items, key=lambda item: item.position)


class BoardStateCache:
    """In-memory mirror of one board; replaced wholesale on reconciliation."""

    def __init__(self):
        self.board_id: Optional[str] = None
        self._columns: Dict[str, Column] = {}
        self._tasks: Dict[str, Task] = {}
        self._subtasks: Dict[str, Subtask] = {}

    # ── Writes ──────────────────────────────────────────────────────────

    def replace_all(
        self,
        board_id: Optional[str],
        columns: Iterable[Column],
        tasks: Iterable[Task],
        subtasks: Iterable[Subtask],
    ) -> BoardSnapshot:
        """Swap in a complete new state. Never merges with the old one."""
        self.board_id = board_id
        self._columns = {c.id: c for c in columns}
        self._tasks = {t.id: t for t in tasks}
        self._subtasks = {s.id: s for s in subtasks}
        logger.debug(
            f"Cache replaced for board {board_id}: {len(self._columns)} columns, "
            f"{len(self._tasks)} tasks, {len(self._subtasks)} subtasks"
        )
        return self.snapshot()

    def clear(self) -> None:
        self.replace_all(None, [], [], [])

    def apply_optimistic_move(self, task_id: str, column_id: str) -> BoardSnapshot:
        """
        Move a task to another column locally, before any store write.

        The cached Task is replaced by a copy, so snapshots taken earlier
        keep their old value. Moving to the current column, to an unknown
        column, or moving an unknown task changes nothing.
        """
        task = self._tasks.get(task_id)
        if task is None or column_id not in self._columns or task.column_id == column_id:
            return self.snapshot()
        self._tasks[task_id] = dataclasses.replace(task, column_id=column_id)
        return self.snapshot()

    # ── Reads ───────────────────────────────────────────────────────────

    @property
    def columns(self) -> List[Column]:
        return _by_position(self._columns.values())

    @property
    def tasks(self) -> List[Task]:
        return _by_position(self._tasks.values())

    @property
    def subtasks(self) -> List[Subtask]:
        return _by_position(self._subtasks.values())

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def get_column(self, column_id: str) -> Optional[Column]:
        return self._columns.get(column_id)

    def get_subtask(self, subtask_id: str) -> Optional[Subtask]:
        return self._subtasks.get(subtask_id)

    def tasks_by_column(self) -> Dict[str, List[Task]]:
        grouped: Dict[str, List[Task]] = {c.id: [] for c in self.columns}
        for task in self.tasks:
            grouped.setdefault(task.column_id, []).append(task)
        return grouped

    def tasks_in_column(self, column_id: str) -> List[Task]:
        return [t for t in self.tasks if t.column_id == column_id]

    def subtasks_by_task(self) -> Dict[str, List[Subtask]]:
        grouped: Dict[str, List[Subtask]] = {}
        for subtask in self.subtasks:
            grouped.setdefault(subtask.task_id, []).append(subtask)
        return grouped

    def subtasks_for(self, task_id: str) -> List[Subtask]:
        return [s for s in self.subtasks if s.task_id == task_id]

    def subtask_progress(self, task_id: str) -> Tuple[int, int]:
        """(completed, total) subtasks of a task."""
        items = self.subtasks_for(task_id)
        return sum(1 for s in items if s.completed), len(items)

    def tasks_filtered(self, predicate: Callable[[Task], bool]) -> List[Task]:
        return [t for t in self.tasks if predicate(t)]

    def search(self, query: str) -> List[Task]:
        return self.tasks_filtered(lambda task: task_matches(task, query))

    def resolve_column(self, over_id: Optional[str]) -> Optional[str]:
        """Column under the pointer: the column itself, or the column of the task hovered."""
        if not over_id:
            return None
        if over_id in self._columns:
            return over_id
        task = self._tasks.get(over_id)
        if task is not None and task.column_id in self._columns:
            return task.column_id
        return None

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(
            board_id=self.board_id,
            columns=tuple(self.columns),
            tasks=tuple(self.tasks),
            subtasks=tuple(self.subtasks),
        )
