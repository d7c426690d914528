"""
Reconciliation loader: fetch a board's authoritative state and swap it
into the cache.

The three reads have no ordering dependency and run concurrently. On any
failure the previous cache is kept untouched.
"""
import asyncio
import logging
from typing import Callable, List

from .cache import BoardStateCache
from .schema import Column, Notification, Severity, Subtask, Task
from .store import RemoteStore, StoreError

logger = logging.getLogger(__name__)


class ReconciliationLoader:
    """Replaces the cache with what the store currently holds."""

    def __init__(self, store: RemoteStore, cache: BoardStateCache,
                 notify: Callable[[Notification], None]):
        self.store = store
        self.cache = cache
        self.notify = notify

    async def load(self, board_id: str) -> bool:
        """Reload ``board_id``. Returns False if the cache was left as it was."""
        try:
            column_rows, task_rows, subtask_rows = await asyncio.gather(
                self.store.columns.list(where={"board_id": board_id}, order_by="position"),
                self.store.tasks.list(where={"board_id": board_id}, order_by="position"),
                self.store.subtasks.list(order_by="position"),
            )
        except StoreError as e:
            logger.error(f"Error loading board {board_id}: {e}")
            self._report_failure()
            return False

        try:
            columns = [Column.from_dict(r) for r in column_rows]
            tasks = [Task.from_dict(r) for r in task_rows]
            subtasks = [Subtask.from_dict(r) for r in subtask_rows]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed record while loading board {board_id}: {e}")
            self._report_failure()
            return False

        tasks = self._drop_orphan_tasks(board_id, columns, tasks)
        task_ids = {t.id for t in tasks}
        # Subtasks are listed store-wide; keep the ones for this board's tasks
        subtasks = [s for s in subtasks if s.task_id in task_ids]

        self.cache.replace_all(board_id, columns, tasks, subtasks)
        logger.info(
            f"Loaded board {board_id}: {len(columns)} columns, "
            f"{len(tasks)} tasks, {len(subtasks)} subtasks"
        )
        return True

    @staticmethod
    def _drop_orphan_tasks(board_id: str, columns: List[Column], tasks: List[Task]) -> List[Task]:
        column_ids = {c.id for c in columns}
        kept = []
        for task in tasks:
            if task.column_id in column_ids:
                kept.append(task)
            else:
                logger.warning(
                    f"Dropping task {task.id} on board {board_id}: "
                    f"column {task.column_id} not loaded"
                )
        return kept

    def _report_failure(self) -> None:
        self.notify(Notification(
            title="Loading Error",
            description="Failed to load board data",
            severity=Severity.ERROR,
        ))
