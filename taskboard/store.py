"""
Remote store backends.

Every backend exposes one collection per entity type (boards, columns,
tasks, subtasks) with the same async CRUD contract:

    await store.tasks.list(where={"board_id": "b1"}, order_by="position")
    await store.tasks.create(record)
    await store.tasks.update(task_id, {"column_id": "c2"})
    await store.tasks.delete(task_id)

Failures raise StoreError. Blocking drivers (sqlite3, requests) run in a
worker thread so the event loop stays responsive.
"""
import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a store read or write fails."""
    pass


# Field names per collection; anything else is rejected before hitting SQL.
COLLECTIONS: Dict[str, Tuple[str, ...]] = {
    "boards": (
        "id", "name", "description", "owner_id", "is_shared",
        "is_archived", "created_at", "updated_at",
    ),
    "columns": ("id", "name", "board_id", "position", "color", "created_at"),
    "tasks": (
        "id", "title", "description", "column_id", "board_id", "owner_id",
        "position", "due_date", "completed", "tags", "created_at", "updated_at",
    ),
    "subtasks": ("id", "title", "task_id", "completed", "position"),
}


def _parse_order(order_by: Optional[str], fields: Tuple[str, ...]) -> Optional[Tuple[str, bool]]:
    """'position' → ('position', False); '-created_at' → ('created_at', True)."""
    if not order_by:
        return None
    descending = order_by.startswith("-")
    name = order_by.lstrip("-")
    if name not in fields:
        raise StoreError(f"Unknown order field: {name}")
    return name, descending


class Collection:
    """Async CRUD over one entity type."""

    name: str = ""

    async def list(self, where: Optional[Dict[str, Any]] = None,
                   order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def delete(self, record_id: str) -> None:
        raise NotImplementedError


class RemoteStore:
    """A set of collections: boards, columns, tasks, subtasks."""

    boards: Collection
    columns: Collection
    tasks: Collection
    subtasks: Collection

    def close(self) -> None:
        pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SQLite backend
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


@contextmanager
def _session(db_path: str) -> Iterator[sqlite3.Connection]:
    """Connection that commits on success and is always closed."""
    conn = _connect(db_path)
    try:
        with conn:
            yield conn
    finally:
        conn.close()


class SQLiteCollection(Collection):
    """One table of a SQLiteStore."""

    def __init__(self, store: "SQLiteStore", name: str):
        self.store = store
        self.name = name
        self.fields = COLLECTIONS[name]

    def _check_fields(self, keys) -> None:
        unknown = set(keys) - set(self.fields)
        if unknown:
            raise StoreError(f"Unknown {self.name} fields: {', '.join(sorted(unknown))}")

    def _list_sync(self, where, order_by) -> List[Dict[str, Any]]:
        where = where or {}
        self._check_fields(where.keys())
        clauses, params = [], []
        for key, value in where.items():
            if isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    return []
                clauses.append(f"{key} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            else:
                clauses.append(f"{key} = ?")
                params.append(value)
        sql = f"SELECT * FROM {self.name}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        order = _parse_order(order_by, self.fields)
        if order:
            sql += f" ORDER BY {order[0]} {'DESC' if order[1] else 'ASC'}, rowid ASC"
        else:
            sql += " ORDER BY rowid ASC"
        with _session(self.store.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def _create_sync(self, record) -> Dict[str, Any]:
        self._check_fields(record.keys())
        if not record.get("id"):
            raise StoreError(f"Cannot create {self.name} record without id")
        keys = list(record.keys())
        sql = (
            f"INSERT INTO {self.name} ({', '.join(keys)}) "
            f"VALUES ({', '.join('?' for _ in keys)})"
        )
        with _session(self.store.db_path) as conn:
            conn.execute(sql, [record[k] for k in keys])
        return dict(record)

    def _update_sync(self, record_id, fields) -> Dict[str, Any]:
        fields = {k: v for k, v in fields.items() if k != "id"}
        self._check_fields(fields.keys())
        with _session(self.store.db_path) as conn:
            if fields:
                assignments = ", ".join(f"{k} = ?" for k in fields)
                cur = conn.execute(
                    f"UPDATE {self.name} SET {assignments} WHERE id = ?",
                    [*fields.values(), record_id],
                )
                if cur.rowcount == 0:
                    raise StoreError(f"{self.name} record {record_id} not found")
            row = conn.execute(
                f"SELECT * FROM {self.name} WHERE id = ?", (record_id,)
            ).fetchone()
        if row is None:
            raise StoreError(f"{self.name} record {record_id} not found")
        return dict(row)

    def _delete_sync(self, record_id) -> None:
        with _session(self.store.db_path) as conn:
            cur = conn.execute(f"DELETE FROM {self.name} WHERE id = ?", (record_id,))
            if cur.rowcount == 0:
                raise StoreError(f"{self.name} record {record_id} not found")

    async def _run(self, op: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.error(f"SQLite {op} on {self.name} failed: {e}")
            raise StoreError(f"{op} {self.name} failed: {e}") from e

    async def list(self, where=None, order_by=None):
        return await self._run("list", self._list_sync, where, order_by)

    async def create(self, record):
        return await self._run("create", self._create_sync, record)

    async def update(self, record_id, fields):
        return await self._run("update", self._update_sync, record_id, fields)

    async def delete(self, record_id):
        await self._run("delete", self._delete_sync, record_id)


class SQLiteStore(RemoteStore):
    """SQLite-backed store, one table per collection."""

    def __init__(self, db_path: str = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "taskboard.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        self.boards = SQLiteCollection(self, "boards")
        self.columns = SQLiteCollection(self, "columns")
        self.tasks = SQLiteCollection(self, "tasks")
        self.subtasks = SQLiteCollection(self, "subtasks")

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _session(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS boards (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    owner_id TEXT NOT NULL,
                    is_shared INTEGER DEFAULT 0,
                    is_archived INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS columns (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    board_id TEXT NOT NULL,
                    position INTEGER DEFAULT 0,
                    color TEXT,
                    created_at TEXT,
                    FOREIGN KEY (board_id) REFERENCES boards(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    column_id TEXT NOT NULL,
                    board_id TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    position INTEGER DEFAULT 0,
                    due_date TEXT,
                    completed INTEGER DEFAULT 0,
                    tags TEXT,  -- JSON list
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (column_id) REFERENCES columns(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subtasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    task_id TEXT NOT NULL,
                    completed INTEGER DEFAULT 0,
                    position INTEGER DEFAULT 0,
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_boards_owner ON boards(owner_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_columns_board ON columns(board_id, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_board ON tasks(board_id, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id, position)")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HTTP backend
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class HTTPCollection(Collection):
    """One REST resource: /{collection} and /{collection}/{id}."""

    def __init__(self, store: "HTTPStore", name: str):
        self.store = store
        self.name = name

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.store.base_url}/{path}"
        try:
            r = self.store.session.request(
                method, url, timeout=self.store.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise StoreError(f"{method} {self.name} failed: {e}") from e
        if not r.ok:
            logger.error(f"{method} {url} returned {r.status_code}")
            raise StoreError(f"{method} {self.name} returned HTTP {r.status_code}")
        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"{method} {self.name} returned invalid JSON") from e

    def _list_sync(self, where, order_by):
        params: Dict[str, Any] = {}
        for key, value in (where or {}).items():
            if isinstance(value, (list, tuple, set)):
                params[key] = ",".join(str(v) for v in value)
            else:
                params[key] = value
        if order_by:
            params["order_by"] = order_by
        data = self._request("GET", self.name, params=params)
        if isinstance(data, dict):
            data = data.get(self.name, data.get("items", []))
        if not isinstance(data, list):
            raise StoreError(f"GET {self.name} returned unexpected payload")
        return data

    async def list(self, where=None, order_by=None):
        return await asyncio.to_thread(self._list_sync, where, order_by)

    async def create(self, record):
        data = await asyncio.to_thread(self._request, "POST", self.name, json=record)
        return data if isinstance(data, dict) else dict(record)

    async def update(self, record_id, fields):
        data = await asyncio.to_thread(
            self._request, "PATCH", f"{self.name}/{record_id}", json=fields
        )
        return data if isinstance(data, dict) else {"id": record_id, **fields}

    async def delete(self, record_id):
        await asyncio.to_thread(self._request, "DELETE", f"{self.name}/{record_id}")


class HTTPStore(RemoteStore):
    """REST client for a hosted store."""

    def __init__(self, base_url: str, api_key: Optional[str] = None,
                 timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"X-API-Key": api_key})
        self.boards = HTTPCollection(self, "boards")
        self.columns = HTTPCollection(self, "columns")
        self.tasks = HTTPCollection(self, "tasks")
        self.subtasks = HTTPCollection(self, "subtasks")

    def close(self) -> None:
        self.session.close()
