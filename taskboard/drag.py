"""
Drag/reorder controller.

State machine:
  IDLE → DRAGGING (drag_start) → IDLE (drag_end)

While dragging, every hover moves the task optimistically in the cache.
On drop one store write commits the final column, then the board is
reconciled whether the write succeeded or not. A failed write is rolled
back by that reconciliation: the optimistic column was never persisted,
so re-fetching restores the pre-drag state.
"""
import logging
from enum import Enum
from typing import Callable, Optional

from .cache import BoardStateCache
from .loader import ReconciliationLoader
from .schema import Notification, Severity, format_datetime, utc_now
from .store import RemoteStore, StoreError

logger = logging.getLogger(__name__)


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragError(Exception):
    """Raised when a drag starts while another one is in flight."""
    pass


class DragController:
    """Turns drag gestures into optimistic moves and one durable write."""

    def __init__(self, cache: BoardStateCache, store: RemoteStore,
                 loader: ReconciliationLoader,
                 notify: Callable[[Notification], None]):
        self.cache = cache
        self.store = store
        self.loader = loader
        self.notify = notify
        self.state = DragState.IDLE
        self.active_task_id: Optional[str] = None
        self._origin_column_id: Optional[str] = None

    @property
    def is_dragging(self) -> bool:
        return self.state == DragState.DRAGGING

    def drag_start(self, task_id: str) -> None:
        if self.is_dragging:
            raise DragError(
                f"Cannot start dragging {task_id}: {self.active_task_id} is already being dragged"
            )
        task = self.cache.get_task(task_id)
        self.state = DragState.DRAGGING
        self.active_task_id = task_id
        self._origin_column_id = task.column_id if task else None
        logger.debug(f"Drag started: {task_id} from {self._origin_column_id}")

    def drag_over(self, over_id: Optional[str]) -> bool:
        """Hover over a column or task. Returns True if the task moved."""
        if not self.is_dragging or not over_id:
            return False
        task = self.cache.get_task(self.active_task_id)
        if task is None:
            return False
        column_id = self.cache.resolve_column(over_id)
        if column_id is None or column_id == task.column_id:
            return False
        self.cache.apply_optimistic_move(task.id, column_id)
        logger.debug(f"Optimistic move: {task.id} → {column_id}")
        return True

    async def drag_end(self, over_id: Optional[str]) -> bool:
        """
        Drop the dragged task.

        Returns True only if a store write happened and succeeded.
        """
        if not self.is_dragging:
            return False
        self.drag_over(over_id)
        task_id = self.active_task_id
        origin = self._origin_column_id
        self._reset()

        if not over_id:
            # No drop target: keep whatever the last hover left in the cache
            return False
        task = self.cache.get_task(task_id)
        if task is None or task.column_id == origin:
            return False

        board_id = self.cache.board_id
        try:
            await self.store.tasks.update(task_id, {
                "column_id": task.column_id,
                "updated_at": format_datetime(utc_now()),
            })
        except StoreError as e:
            logger.error(f"Error moving task {task_id}: {e}")
            self.notify(Notification(
                title="Update Error",
                description="Failed to move task",
                severity=Severity.ERROR,
            ))
            if board_id:
                await self.loader.load(board_id)
            return False

        logger.info(f"Moved task {task_id}: {origin} → {task.column_id}")
        if board_id:
            await self.loader.load(board_id)
        return True

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.active_task_id = None
        self._origin_column_id = None
