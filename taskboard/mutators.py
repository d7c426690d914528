"""
Task and subtask mutations.

Every mutation writes to the store first. On success the current board is
reconciled and a success notification goes out; on failure an error
notification goes out and the cache is left alone (nothing was applied
locally).
"""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set

from .cache import BoardStateCache
from .loader import ReconciliationLoader
from .schema import (
    Notification,
    Severity,
    Subtask,
    Task,
    encode_tags,
    format_datetime,
    make_id,
    parse_datetime,
    utc_now,
)
from .store import RemoteStore, StoreError

logger = logging.getLogger(__name__)

# Fields update_task accepts
EDITABLE_TASK_FIELDS = ("title", "description", "due_date", "tags", "completed", "column_id")


class ValidationError(Exception):
    """Raised when mutation input is unusable (e.g. an empty title)."""
    pass


def clean_tags(tags: Optional[Iterable[str]]) -> Set[str]:
    """Trimmed, non-empty tags. A bare string is rejected, not split into characters."""
    if tags is None:
        return set()
    if isinstance(tags, str):
        raise ValidationError("tags must be a list of strings")
    return {t.strip() for t in tags if isinstance(t, str) and t.strip()}


class TaskMutators:
    """Create/update/delete for tasks and subtasks of the loaded board."""

    def __init__(self, store: RemoteStore, cache: BoardStateCache,
                 loader: ReconciliationLoader,
                 notify: Callable[[Notification], None],
                 owner_id: str = ""):
        self.store = store
        self.cache = cache
        self.loader = loader
        self.notify = notify
        self.owner_id = owner_id

    async def _commit(
        self,
        write: Callable[[], Awaitable[Any]],
        success: Notification,
        failure: Notification,
        action: str,
    ) -> bool:
        """Run one store write, then reconcile on success or report on failure."""
        try:
            await write()
        except StoreError as e:
            logger.error(f"Error during {action}: {e}")
            self.notify(failure)
            return False
        if self.cache.board_id:
            await self.loader.load(self.cache.board_id)
        self.notify(success)
        return True

    # ── Tasks ───────────────────────────────────────────────────────────

    async def create_task(
        self,
        title: str,
        column_id: Optional[str] = None,
        description: str = "",
        due_date: Optional[datetime] = None,
        tags: Iterable[str] = (),
    ) -> Optional[Task]:
        """
        Append a new task to a column (the first column by default).

        Returns the created task, or None if nothing was written.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title is required")
        board_id = self.cache.board_id
        if not board_id:
            logger.warning("create_task called with no board loaded")
            return None
        columns = self.cache.columns
        target = column_id or (columns[0].id if columns else None)
        if target is None or self.cache.get_column(target) is None:
            logger.warning(f"create_task: no usable column ({target}) on board {board_id}")
            return None

        task = Task(
            id=make_id("task"),
            title=title,
            column_id=target,
            board_id=board_id,
            owner_id=self.owner_id,
            position=len(self.cache.tasks_in_column(target)),
            description=(description or "").strip(),
            due_date=due_date,
            tags=clean_tags(tags),
        )
        ok = await self._commit(
            lambda: self.store.tasks.create(task.to_record()),
            Notification("Task created", f'"{title}" has been added to your board'),
            Notification("Creation Error", "Failed to create task", Severity.ERROR),
            f"create task {task.id}",
        )
        return task if ok else None

    async def update_task(self, task_id: str, **changes) -> bool:
        unknown = set(changes) - set(EDITABLE_TASK_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update task fields: {', '.join(sorted(unknown))}")
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise ValidationError("Task title is required")
        if "column_id" in changes and self.cache.get_column(changes["column_id"]) is None:
            raise ValidationError(f"Column {changes['column_id']} is not on the loaded board")

        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "tags":
                fields["tags"] = encode_tags(clean_tags(value))
            elif key == "due_date":
                fields["due_date"] = format_datetime(parse_datetime(value))
            elif key == "completed":
                fields["completed"] = 1 if value else 0
            elif key == "description":
                fields["description"] = value or None
            else:
                fields[key] = value
        fields["updated_at"] = format_datetime(utc_now())

        return await self._commit(
            lambda: self.store.tasks.update(task_id, fields),
            Notification("Task updated", "Your changes have been saved"),
            Notification("Update failed", "Failed to save changes", Severity.ERROR),
            f"update task {task_id}",
        )

    async def delete_task(self, task_id: str) -> bool:
        return await self._commit(
            lambda: self.store.tasks.delete(task_id),
            Notification("Task deleted", "The task has been removed"),
            Notification("Delete failed", "Failed to delete task", Severity.ERROR),
            f"delete task {task_id}",
        )

    # ── Subtasks ────────────────────────────────────────────────────────

    async def create_subtask(self, task_id: str, title: str) -> Optional[Subtask]:
        """Append a subtask to a task. Returns it, or None if the write failed."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Subtask title is required")
        subtask = Subtask(
            id=make_id("subtask"),
            title=title,
            task_id=task_id,
            completed=False,
            position=len(self.cache.subtasks_for(task_id)),
        )
        ok = await self._commit(
            lambda: self.store.subtasks.create(subtask.to_record()),
            Notification("Subtask added", "New subtask has been created"),
            Notification("Creation failed", "Failed to create subtask", Severity.ERROR),
            f"create subtask {subtask.id}",
        )
        return subtask if ok else None

    async def toggle_subtask(self, subtask_id: str, completed: bool) -> bool:
        return await self._commit(
            lambda: self.store.subtasks.update(subtask_id, {"completed": 1 if completed else 0}),
            Notification("Subtask updated", "Subtask marked done" if completed else "Subtask reopened"),
            Notification("Update failed", "Failed to update subtask", Severity.ERROR),
            f"toggle subtask {subtask_id}",
        )

    async def delete_subtask(self, subtask_id: str) -> bool:
        return await self._commit(
            lambda: self.store.subtasks.delete(subtask_id),
            Notification("Subtask deleted", "Subtask has been removed"),
            Notification("Delete failed", "Failed to delete subtask", Severity.ERROR),
            f"delete subtask {subtask_id}",
        )
