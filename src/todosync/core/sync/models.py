"""
Data models for the sync engine's output stream.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from todosync.core.todos.models import TaskList


class EngineState(str, Enum):
    """Lifecycle state of the sync engine."""

    IDLE = "idle"
    TRACKING = "tracking"


class ChangeKind(str, Enum):
    """Kind of change to one task file."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ChangeEvent(BaseModel):
    """
    One logical state transition of a task file.

    A parse failure is reported as an 'updated' event with error set and no
    task_list; the previously cached list (if any) is kept.
    """

    kind: ChangeKind
    session_id: str = Field(..., description="Session the file belongs to")
    task_list: TaskList | None = Field(
        default=None, description="New list (created/updated) or the removed list (deleted)"
    )
    error: str | None = Field(default=None, description="Parse failure message")

    @property
    def is_error(self) -> bool:
        """Whether this event reports a parse failure."""
        return self.error is not None
