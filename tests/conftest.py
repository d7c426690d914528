"""Shared test fixtures for the board core tests."""

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pytest

# Ensure the project root is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.cache import BoardStateCache
from taskboard.drag import DragController
from taskboard.events import NotificationChannel
from taskboard.loader import ReconciliationLoader
from taskboard.mutators import TaskMutators
from taskboard.schema import Board, Column, Notification, Severity, Subtask, Task
from taskboard.store import Collection, RemoteStore, SQLiteStore, StoreError


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store double with switchable outages
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class FlakyCollection(Collection):
    """Wraps a real collection; records writes and fails on demand."""

    def __init__(self, owner: "FlakyStore", inner: Collection):
        self.owner = owner
        self.inner = inner
        self.name = inner.name

    async def list(self, where=None, order_by=None):
        if self.owner.fail_reads:
            raise StoreError(f"simulated outage listing {self.name}")
        return await self.inner.list(where=where, order_by=order_by)

    async def _write(self, op, *args):
        self.owner.writes.append((self.name, op, args))
        if self.owner.fail_writes:
            raise StoreError(f"simulated outage on {op} {self.name}")
        return await getattr(self.inner, op)(*args)

    async def create(self, record):
        return await self._write("create", record)

    async def update(self, record_id, fields):
        return await self._write("update", record_id, fields)

    async def delete(self, record_id):
        return await self._write("delete", record_id)


class FlakyStore(RemoteStore):
    def __init__(self, inner: SQLiteStore):
        self.inner = inner
        self.fail_reads = False
        self.fail_writes = False
        self.writes: List[tuple] = []
        self.boards = FlakyCollection(self, inner.boards)
        self.columns = FlakyCollection(self, inner.columns)
        self.tasks = FlakyCollection(self, inner.tasks)
        self.subtasks = FlakyCollection(self, inner.subtasks)


@dataclass
class Harness:
    """Core components wired around one store, plus captured notifications."""
    store: FlakyStore
    cache: BoardStateCache
    loader: ReconciliationLoader
    drag: DragController
    mutators: TaskMutators
    notifications: List[Notification] = field(default_factory=list)

    @property
    def errors(self) -> List[Notification]:
        return [n for n in self.notifications if n.severity == Severity.ERROR]


async def seed(store: SQLiteStore) -> None:
    """Board b1: To Do (t1, t2), Doing, Done (t3); t1 has two subtasks."""
    await store.boards.create(Board(id="b1", name="Work", owner_id="u1").to_record())
    for pos, (cid, name) in enumerate([("col_todo", "To Do"), ("col_doing", "Doing"), ("col_done", "Done")]):
        await store.columns.create(Column(id=cid, name=name, board_id="b1", position=pos).to_record())
    await store.tasks.create(Task(id="t1", title="Write report", column_id="col_todo",
                                  board_id="b1", owner_id="u1", position=0,
                                  tags={"urgent", "q3"}).to_record())
    await store.tasks.create(Task(id="t2", title="Review budget", column_id="col_todo",
                                  board_id="b1", owner_id="u1", position=1,
                                  description="Numbers for Q3").to_record())
    await store.tasks.create(Task(id="t3", title="Ship release", column_id="col_done",
                                  board_id="b1", owner_id="u1", position=0).to_record())
    await store.subtasks.create(Subtask(id="s1", title="Outline", task_id="t1", position=0).to_record())
    await store.subtasks.create(Subtask(id="s2", title="Draft", task_id="t1", position=1,
                                        completed=True).to_record())


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteStore(str(tmp_path / "board.db"))


@pytest.fixture
def store(sqlite_store):
    return FlakyStore(sqlite_store)


@pytest.fixture
def harness(store):
    """Seeded board b1, loaded into a fresh cache."""
    asyncio.run(seed(store.inner))
    notes: List[Notification] = []
    channel = NotificationChannel()
    channel.subscribe(notes.append)
    cache = BoardStateCache()
    loader = ReconciliationLoader(store, cache, channel)
    drag = DragController(cache, store, loader, channel)
    mutators = TaskMutators(store, cache, loader, channel, owner_id="u1")
    assert asyncio.run(loader.load("b1"))
    return Harness(store, cache, loader, drag, mutators, notes)
