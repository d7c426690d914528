"""
Quick-add form.

Collects title, description, column, due date and tags for a new task.
A date mentioned in the title ("Review docs tomorrow 3pm") is detected
and used as the due date unless one was picked explicitly.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from dateparser.search import search_dates

from .mutators import TaskMutators, ValidationError
from .schema import Task, utc_now

logger = logging.getLogger(__name__)


def detect_due_date(text: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """First date mentioned in ``text``, interpreted relative to ``now``."""
    if not text or not text.strip():
        return None
    now = now or utc_now()
    base = now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now
    found = search_dates(
        text,
        languages=["en"],
        settings={"PREFER_DATES_FROM": "future", "RELATIVE_BASE": base},
    )
    if not found:
        return None
    _, parsed = found[0]
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class QuickAddForm:
    """State of the quick-add dialog."""
    title: str = ""
    description: str = ""
    column_id: Optional[str] = None
    due_date: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)

    def set_title(self, title: str, now: Optional[datetime] = None) -> None:
        self.title = title
        if self.due_date is None:
            self.due_date = detect_due_date(title, now)

    def add_tag(self, tag: str) -> bool:
        tag = (tag or "").strip()
        if not tag or tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def reset(self) -> None:
        self.title = ""
        self.description = ""
        self.due_date = None
        self.tags = []

    async def submit(self, mutators: TaskMutators) -> Optional[Task]:
        """Create the task and clear the form. Empty titles are ignored."""
        if not self.title.strip():
            return None
        try:
            task = await mutators.create_task(
                self.title,
                column_id=self.column_id,
                description=self.description,
                due_date=self.due_date,
                tags=self.tags,
            )
        except ValidationError as e:
            logger.warning(f"Quick add rejected: {e}")
            return None
        self.reset()
        return task
