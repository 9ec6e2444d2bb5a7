"""
Custom exceptions for todosync.

Exception Hierarchy:
    TodoSyncError (base)
    ├── TaskParseError (malformed or unreadable task file)
    ├── WatchError (todos directory unusable)
    ├── ListenerBindError (hook listener could not bind/start)
    └── SessionStoreError (session history could not be persisted)

Failures local to one file or one request are isolated by the callers; only
WatchError and ListenerBindError are surfaced to the application root, which
decides how to degrade.
"""

from __future__ import annotations

from pathlib import Path


class TodoSyncError(Exception):
    """
    Base exception for all todosync errors.

    Attributes:
        message: Human-readable error message
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class TaskParseError(TodoSyncError):
    """
    Raised when a task file cannot be read or decoded.

    Attributes:
        source_path: File that failed to parse
    """

    def __init__(self, source_path: Path | str, message: str) -> None:
        super().__init__(message)
        self.source_path = Path(source_path)


class WatchError(TodoSyncError):
    """Raised when the todos directory cannot be created, listed or watched."""

    def __init__(self, message: str, directory: Path | None = None) -> None:
        super().__init__(message)
        self.directory = directory


class ListenerBindError(TodoSyncError):
    """Raised when the hook listener cannot bind its loopback socket."""

    pass


class SessionStoreError(TodoSyncError):
    """Raised when the session history cannot be written."""

    pass
