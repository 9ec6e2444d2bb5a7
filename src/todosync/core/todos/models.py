"""
Task list data models for todosync.

A TaskList is what one Claude Code task file parses into. Models are
Pydantic so they serialize cleanly for the structured export and the CLI.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    """Status of a task item."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. 'In Progress'."""
        return self.value.replace("_", " ").title()


class TaskPriority(str, Enum):
    """Priority of a task item."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Sort rank, high first."""
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class TaskItem(BaseModel):
    """A single entry of the assistant's task list."""

    id: str = Field(..., description="Item id (positional index when the file has none)")
    content: str = Field(default="", description="Task text")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)

    model_config = ConfigDict(frozen=True)


class TodoStats(BaseModel):
    """
    Status and priority counts over one or more task lists.

    pending + in_progress + completed always equals total.
    """

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0
    file_count: int = 0

    def add_item(self, item: TaskItem) -> None:
        """Count one item."""
        self.total += 1
        if item.status == TaskStatus.PENDING:
            self.pending += 1
        elif item.status == TaskStatus.IN_PROGRESS:
            self.in_progress += 1
        else:
            self.completed += 1

        if item.priority == TaskPriority.HIGH:
            self.high_priority += 1
        elif item.priority == TaskPriority.MEDIUM:
            self.medium_priority += 1
        else:
            self.low_priority += 1

    @classmethod
    def from_task_lists(cls, task_lists: list[TaskList]) -> TodoStats:
        """Aggregate counts over several lists (file_count = number of lists)."""
        stats = cls(file_count=len(task_lists))
        for task_list in task_lists:
            for item in task_list.items:
                stats.add_item(item)
        return stats

    @property
    def completion_rate(self) -> float:
        """Fraction of completed items (0.0 when empty)."""
        if self.total == 0:
            return 0.0
        return self.completed / self.total


class TaskList(BaseModel):
    """
    Parsed contents of one task file.

    session_id is derived from the file name only, never from the content,
    so rewriting a file can never move it to another session.

    Example:
        >>> task_list = TaskList(
        ...     session_id="abc123",
        ...     items=[TaskItem(id="0", content="write tests")],
        ...     source_path=Path("/tmp/tasks-abc123.json"),
        ... )
        >>> task_list.stats().pending
        1
    """

    session_id: str = Field(..., description="Session the file belongs to")
    items: list[TaskItem] = Field(default_factory=list)
    source_path: Path = Field(..., description="Task file this list was parsed from")
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def stats(self) -> TodoStats:
        """Counts for this list alone."""
        stats = TodoStats(file_count=1)
        for item in self.items:
            stats.add_item(item)
        return stats

    def by_status(self, status: TaskStatus) -> list[TaskItem]:
        """Items with the given status, in file order."""
        return [item for item in self.items if item.status == status]
