"""Event and handle types produced by the directory watcher."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class WatchEventKind(str, Enum):
    """What happened to a task file."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class WatchEvent:
    """
    A task file change for the active session.

    session_id is the session that was active when the event was emitted,
    not when the underlying watch was registered.
    """

    kind: WatchEventKind
    path: Path
    session_id: str


@dataclass
class FileWatch:
    """Per-file watch handle for one matching task file."""

    path: Path
    watched_since: float = field(default_factory=time.monotonic)
    notifications: int = 0
