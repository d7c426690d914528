"""
Board data model.

Entities:
  Board → Column → Task → Subtask

Records travel to and from the store as flat dicts with snake_case keys.
Tags are held as a set in memory and stored as a JSON array string.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Set, Dict, Any, Iterable
import json
import time
import uuid


DEFAULT_COLUMN_COLOR = "#6b7280"


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def make_id(prefix: str) -> str:
    """Generate a sortable unique ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"{prefix}_{ts}_{rand}"


def encode_tags(tags: Iterable[str]) -> str:
    """Encode a tag collection for storage (sorted JSON array)."""
    return json.dumps(sorted(set(tags or ())))


def decode_tags(raw: Any) -> Set[str]:
    """
    Decode a stored tag value into a set of strings.

    Empty, absent or malformed values decode to an empty set.
    """
    if not raw:
        return set()
    if isinstance(raw, (list, tuple, set, frozenset)):
        values = raw
    else:
        try:
            values = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return set()
    if not isinstance(values, (list, tuple, set, frozenset)):
        return set()
    return {v for v in values if isinstance(v, str)}


def parse_bool(value: Any) -> bool:
    """Stored flags arrive as bools, 0/1 or "0"/"1"; positive means true."""
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return False
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return str(value).strip().lower() == "true"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (trailing Z accepted). Naive values are UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Severity(Enum):
    """Notification severity."""
    NORMAL = "normal"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A user-visible message for the presentation layer."""
    title: str
    description: str = ""
    severity: Severity = Severity.NORMAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class User:
    id: str
    email: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.email


@dataclass(frozen=True)
class AuthState:
    """Snapshot delivered to auth subscribers."""
    user: Optional[User] = None
    is_loading: bool = False


@dataclass
class Board:
    """Top-level task collection owned by a user."""
    id: str
    name: str
    owner_id: str
    description: str = ""
    is_shared: bool = False
    is_archived: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "is_shared": 1 if self.is_shared else 0,
            "is_archived": 1 if self.is_archived else 0,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            owner_id=data.get("owner_id") or "",
            description=data.get("description") or "",
            is_shared=parse_bool(data.get("is_shared")),
            is_archived=parse_bool(data.get("is_archived")),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
        )


@dataclass
class Column:
    """Ordered bucket of tasks within a board."""
    id: str
    name: str
    board_id: str
    position: int = 0
    color: str = DEFAULT_COLUMN_COLOR
    created_at: datetime = field(default_factory=utc_now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "board_id": self.board_id,
            "position": self.position,
            "color": self.color,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            board_id=data["board_id"],
            position=int(data.get("position") or 0),
            color=data.get("color") or DEFAULT_COLUMN_COLOR,
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass
class Task:
    """A unit of work on a board."""
    id: str
    title: str
    column_id: str
    board_id: str
    owner_id: str
    position: int = 0
    description: str = ""
    due_date: Optional[datetime] = None
    completed: bool = False
    tags: Set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_record(self) -> Dict[str, Any]:
        """Storage form: tags encoded, flags as 0/1."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description or None,
            "column_id": self.column_id,
            "board_id": self.board_id,
            "owner_id": self.owner_id,
            "position": self.position,
            "due_date": format_datetime(self.due_date),
            "completed": 1 if self.completed else 0,
            "tags": encode_tags(self.tags),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Presentation form: tags as a sorted list, real booleans."""
        data = self.to_record()
        data["tags"] = sorted(self.tags)
        data["completed"] = self.completed
        data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        created_at = parse_datetime(data.get("created_at")) or utc_now()
        updated_at = parse_datetime(data.get("updated_at")) or created_at
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            column_id=data["column_id"],
            board_id=data["board_id"],
            owner_id=data.get("owner_id") or "",
            position=int(data.get("position") or 0),
            description=data.get("description") or "",
            due_date=parse_datetime(data.get("due_date")),
            completed=parse_bool(data.get("completed")),
            tags=decode_tags(data.get("tags")),
            created_at=created_at,
            updated_at=max(updated_at, created_at),
        )


@dataclass
class Subtask:
    """A checklist item belonging to a task."""
    id: str
    title: str
    task_id: str
    completed: bool = False
    position: int = 0

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "task_id": self.task_id,
            "completed": 1 if self.completed else 0,
            "position": self.position,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_record()
        data["completed"] = self.completed
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subtask":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            task_id=data["task_id"],
            completed=parse_bool(data.get("completed")),
            position=int(data.get("position") or 0),
        )
