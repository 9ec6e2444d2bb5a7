"""
Directory watcher for Claude Code task files.

Watches the todos directory (non-recursively) with watchdog and turns raw
filesystem notifications into created/updated/deleted events for the files
of one session. A file belongs to the session when its name contains the
session id and ends in .json.

Raw notifications are ambiguous: editors and the assistant itself write via
temp files and renames, and notifications can be coalesced or dropped. The
watcher therefore re-stats the implicated path before deciding what
happened, and offers reconcile() as a full rescan that repairs any drift
between the watch table and the directory.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from todosync.core.exceptions import WatchError
from todosync.core.watcher.models import FileWatch, WatchEvent, WatchEventKind

logger = logging.getLogger(__name__)

TASK_FILE_SUFFIX = ".json"
OBSERVER_JOIN_TIMEOUT = 2.0

# watchdog event types that mean "content may have changed"
_CONTENT_EVENTS = {"modified", "closed"}
_IGNORED_EVENTS = {"opened", "closed_no_write"}


def matches_session(filename: str, session_id: str) -> bool:
    """
    Whether a file name belongs to a session.

    Substring match: an id that is a substring of another id or of an
    unrelated file name will match too. The naming convention is owned by
    Claude Code, so this is kept as-is.
    """
    return bool(session_id) and session_id in filename and filename.endswith(TASK_FILE_SUFFIX)


def _inline(fn: Callable[[], None]) -> None:
    fn()


class _RawEventHandler(FileSystemEventHandler):
    """Forwards watchdog notifications to the owning DirectoryWatcher."""

    def __init__(self, watcher: DirectoryWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in _IGNORED_EVENTS:
            return
        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(dest_path)
        for raw_path in paths:
            self._watcher.notify(Path(os.fsdecode(raw_path)), event.event_type)


class DirectoryWatcher:
    """
    Watch one directory for the task files of the active session.

    Events are delivered to on_event. Raw notifications arrive on watchdog's
    observer thread; they are handed to dispatch, which lets the owner run
    the stat-and-classify step on its own serialized path. By default they
    are handled inline on the observer thread.

    Example:
        >>> watcher = DirectoryWatcher(Path("~/.claude/todos").expanduser(), print)
        >>> watcher.start_watching("abc123")  # emits 'created' for existing files
        >>> watcher.stop_watching()
    """

    def __init__(
        self,
        todos_dir: Path,
        on_event: Callable[[WatchEvent], None],
        dispatch: Callable[[Callable[[], None]], None] | None = None,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            todos_dir: Directory holding the task files
            on_event: Callback receiving every WatchEvent
            dispatch: Runs a raw-notification handler (defaults to inline)
            observer_factory: Builds the watchdog observer (injectable for tests)
        """
        self.todos_dir = Path(todos_dir)
        self._on_event = on_event
        self._dispatch = dispatch or _inline
        self._observer_factory = observer_factory
        self._observer: Any | None = None
        self._active_session_id: str | None = None
        self._file_watches: dict[Path, FileWatch] = {}

    @property
    def active_session_id(self) -> str | None:
        """Session whose files are currently watched."""
        return self._active_session_id

    @property
    def is_watching(self) -> bool:
        """Whether a directory watch is established."""
        return self._observer is not None

    @property
    def watched_paths(self) -> list[Path]:
        """Files that currently hold a per-file watch."""
        return sorted(self._file_watches)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_watching(self, session_id: str) -> None:
        """
        Watch the directory for session_id's files.

        Stops any previous watch, establishes the directory watch, then scans
        for existing matches; each one gets a per-file watch and a synthetic
        'created' event.

        Raises:
            WatchError: If the directory cannot be created, watched or listed
        """
        self.stop_watching()
        self._active_session_id = session_id

        try:
            self.todos_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WatchError(
                f"Cannot create todos directory {self.todos_dir}: {e}", self.todos_dir
            ) from e

        observer = self._observer_factory()
        try:
            observer.schedule(_RawEventHandler(self), str(self.todos_dir), recursive=False)
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatchError(f"Cannot watch {self.todos_dir}: {e}", self.todos_dir) from e
        self._observer = observer

        existing = self._scan(session_id)
        for path in existing:
            self._watch_file(path)
            self._emit(WatchEventKind.CREATED, path)

        logger.info(
            f"Watching {self.todos_dir} for session {session_id} "
            f"({len(existing)} existing file(s))"
        )

    def stop_watching(self) -> None:
        """Release the directory watch and every per-file watch."""
        observer, self._observer = self._observer, None
        if observer is not None:
            try:
                observer.stop()
                observer.join(timeout=OBSERVER_JOIN_TIMEOUT)
            except RuntimeError:
                # join() on an observer that never started
                logger.debug("Observer was not running")
            logger.info(f"Stopped watching {self.todos_dir}")
        self._file_watches.clear()
        self._active_session_id = None

    # ------------------------------------------------------------------
    # Notification handling
    # ------------------------------------------------------------------

    def notify(self, path: Path, event_type: str) -> None:
        """
        Entry point for raw notifications (observer thread).

        Filters by the active session and hands matching notifications to
        dispatch for classification.
        """
        session_id = self._active_session_id
        if session_id is None or not matches_session(path.name, session_id):
            return
        self._dispatch(lambda: self.handle_notification(path, event_type, session_id))

    def handle_notification(
        self, path: Path, event_type: str, session_id: str | None = None
    ) -> None:
        """
        Classify one raw notification.

        A content notification on a path with a per-file watch is a file-level
        change; everything else is a directory-level change that needs a stat
        to tell creation from deletion. Notifications registered for a session
        that is no longer active are dropped.
        """
        active = self._active_session_id
        if active is None or not self.is_watching:
            return
        if session_id is not None and session_id != active:
            logger.debug(f"Dropping stale notification for {path.name} (session {session_id})")
            return
        if not matches_session(path.name, active):
            return

        if event_type in _CONTENT_EVENTS and path in self._file_watches:
            self.handle_file_change(path)
        else:
            self.handle_directory_change(path)

    def handle_file_change(self, path: Path) -> None:
        """Per-file change: the file was written."""
        watch = self._file_watches.get(path)
        if watch is None:
            self.handle_directory_change(path)
            return
        if not path.exists():
            # Deleted between the notification and now
            self.handle_directory_change(path)
            return
        watch.notifications += 1
        self._emit(WatchEventKind.UPDATED, path)

    def handle_directory_change(self, path: Path) -> None:
        """
        Directory-level change: stat the path to find out what happened.

        Missing file -> deletion (the per-file watch is cancelled). Existing
        file without a watch -> creation. Existing file that is already
        watched was replaced in place (rename over it) -> update.
        """
        try:
            st = path.stat()
        except FileNotFoundError:
            self._unwatch_file(path)
            self._emit(WatchEventKind.DELETED, path)
            return
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return

        if not stat.S_ISREG(st.st_mode):
            return

        if path in self._file_watches:
            self._file_watches[path].notifications += 1
            self._emit(WatchEventKind.UPDATED, path)
        else:
            self._watch_file(path)
            self._emit(WatchEventKind.CREATED, path)

    def reconcile(self) -> list[WatchEvent]:
        """
        Full rescan of the directory against the watch table.

        Emits 'created' for matching files without a watch, 'deleted' for
        watched files that are gone and 'updated' for every other match, so
        that each matching file goes through the parse path again.

        Returns:
            The events emitted, in emission order
        """
        session_id = self._active_session_id
        if session_id is None:
            return []

        try:
            current = self._scan(session_id)
        except WatchError as e:
            logger.warning(f"Reconcile skipped: {e}")
            return []

        events: list[WatchEvent] = []
        for path in current:
            if path in self._file_watches:
                events.append(self._emit(WatchEventKind.UPDATED, path))
            else:
                self._watch_file(path)
                events.append(self._emit(WatchEventKind.CREATED, path))

        current_set = set(current)
        for path in list(self._file_watches):
            if path not in current_set:
                self._unwatch_file(path)
                events.append(self._emit(WatchEventKind.DELETED, path))

        logger.debug(f"Reconciled session {session_id}: {len(events)} event(s)")
        return events

    def session_files(self) -> list[Path]:
        """Matching files for the active session (empty when idle)."""
        if self._active_session_id is None:
            return []
        try:
            return self._scan(self._active_session_id)
        except WatchError as e:
            logger.warning(str(e))
            return []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _scan(self, session_id: str) -> list[Path]:
        try:
            names = os.listdir(self.todos_dir)
        except OSError as e:
            raise WatchError(f"Cannot list {self.todos_dir}: {e}", self.todos_dir) from e
        return sorted(
            self.todos_dir / name
            for name in names
            if matches_session(name, session_id) and (self.todos_dir / name).is_file()
        )

    def _watch_file(self, path: Path) -> None:
        if path not in self._file_watches:
            self._file_watches[path] = FileWatch(path=path)

    def _unwatch_file(self, path: Path) -> None:
        self._file_watches.pop(path, None)

    def _emit(self, kind: WatchEventKind, path: Path) -> WatchEvent:
        # Callers only emit while a session is active
        event = WatchEvent(kind=kind, path=path, session_id=self._active_session_id or "")
        logger.debug(f"Emitting {kind.value} for {path.name}")
        self._on_event(event)
        return event
