"""
Todo synchronization engine.

Mirrors the task lists Claude Code writes for the active session into an
in-memory cache and publishes one ChangeEvent per state transition of each
task file. Two unreliable sources feed it:

    - DirectoryWatcher: created/updated/deleted events for session files
    - HookListener: sessionUpdate (session switch) and todoUpdate (rescan hint)

Serialization:
    Every mutation of the cache and the debounce table runs on one
    processing path. Raw watch notifications, debounce fires, hook events and
    public commands are all put on a single queue and handled in order, either
    by the worker thread (start()) or by whoever calls process_pending().
    Other threads only ever enqueue.

Debounce:
    created/updated events (re)arm a per-path timer; the file is parsed once
    the quiet window has passed without further events. Deletions are handled
    immediately. Each armed timer carries a token, and a fire whose token no
    longer matches the table (re-armed, cancelled, session switched) is
    discarded.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from todosync.core.config.models import SyncConfig
from todosync.core.exceptions import SessionStoreError, TaskParseError, WatchError
from todosync.core.hooks.listener import HookListener
from todosync.core.hooks.models import HookEvent, HookEventKind
from todosync.core.session.store import SessionStore
from todosync.core.sync import formatter
from todosync.core.sync.models import ChangeEvent, ChangeKind, EngineState
from todosync.core.sync.timers import Scheduler, ThreadingScheduler, TimerHandle
from todosync.core.todos.models import TaskList, TodoStats
from todosync.core.todos.parser import UNKNOWN_SESSION, extract_session_id, parse_task_file
from todosync.core.watcher.models import WatchEvent, WatchEventKind
from todosync.core.watcher.watcher import DirectoryWatcher

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT = 30.0
WORKER_JOIN_TIMEOUT = 5.0

ChangeSubscriber = Callable[[ChangeEvent], None]
T = TypeVar("T")


@dataclass(frozen=True)
class _Deferred:
    """Raw-notification handling handed over from the observer thread."""

    run: Callable[[], None]


@dataclass(frozen=True)
class _DebounceFired:
    path: Path
    token: int


@dataclass(frozen=True)
class _HookReceived:
    event: HookEvent


@dataclass(frozen=True)
class _Command:
    run: Callable[[], Any]
    future: Future


@dataclass(frozen=True)
class _PendingParse:
    handle: TimerHandle
    token: int


_SHUTDOWN = object()


class SyncEngine:
    """
    Orchestrates watcher, listener, parser and session store.

    State machine: IDLE -> start_session() -> TRACKING -> stop_session() -> IDLE.

    Example:
        >>> engine = SyncEngine(config, listener=listener)
        >>> engine.subscribe(lambda event: print(event.kind, event.session_id))
        >>> engine.start()                    # worker thread
        >>> engine.start_session("abc123", "/work/project")
        >>> engine.get_aggregate_stats().total
        2
        >>> engine.close()
    """

    def __init__(
        self,
        config: SyncConfig,
        session_store: SessionStore | None = None,
        listener: HookListener | None = None,
        scheduler: Scheduler | None = None,
        observer_factory: Callable[[], Any] | None = None,
    ) -> None:
        """
        Initialize the engine (idle, no worker thread).

        Args:
            config: Directories, debounce window and limits
            session_store: Session history (built from config when omitted)
            listener: Hook listener to subscribe to, if hooks are available
            scheduler: Debounce timer scheduler (threading.Timer when omitted)
            observer_factory: watchdog observer factory for the watcher
        """
        self._config = config
        self.session_store = session_store or SessionStore(
            config.sessions_file, history_limit=config.history_limit
        )
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._queue: queue.Queue[Any] = queue.Queue()

        watcher_kwargs: dict[str, Any] = {}
        if observer_factory is not None:
            watcher_kwargs["observer_factory"] = observer_factory
        self._watcher = DirectoryWatcher(
            config.todos_dir,
            on_event=self._on_watch_event,
            dispatch=self._defer,
            **watcher_kwargs,
        )

        self._state = EngineState.IDLE
        self._active_session_id: str | None = None
        self._degraded = False
        self._cache: dict[Path, TaskList] = {}
        self._pending: dict[Path, _PendingParse] = {}
        self._tokens = itertools.count(1)

        self._subscribers: list[ChangeSubscriber] = []
        self._subscribers_lock = threading.Lock()

        self._worker: threading.Thread | None = None
        self._drain_lock = threading.RLock()
        self._processing_thread: threading.Thread | None = None

        self._unsubscribe_hooks: Callable[[], None] | None = None
        if listener is not None:
            self._unsubscribe_hooks = listener.subscribe(self.post_hook_event)

    # ------------------------------------------------------------------
    # Read API (safe from any thread; returns snapshots)
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    @property
    def degraded(self) -> bool:
        """True while file watching failed for the active session."""
        return self._degraded

    @property
    def watcher(self) -> DirectoryWatcher:
        return self._watcher

    def task_lists(self) -> list[TaskList]:
        """Cached lists ordered by source path."""
        return sorted(dict(self._cache).values(), key=lambda t: str(t.source_path))

    def task_list_for_session(self, session_id: str) -> list[TaskList]:
        """Cached lists whose file belongs to session_id."""
        return [t for t in self.task_lists() if t.session_id == session_id]

    def get_aggregate_stats(self) -> TodoStats:
        """Status and priority counts summed over every cached list."""
        return TodoStats.from_task_lists(self.task_lists())

    def export_as_text(self) -> str:
        return formatter.export_as_text(self.task_lists())

    def export_as_structured(self) -> str:
        return formatter.export_as_structured(self.task_lists())

    def export_as_outline(self) -> str:
        return formatter.export_as_outline(self.task_lists())

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, callback: ChangeSubscriber) -> Callable[[], None]:
        """
        Register a callback for every ChangeEvent.

        Callbacks run on the processing path; exceptions are logged and do
        not affect other subscribers.

        Returns:
            Function that removes the subscription
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: ChangeEvent) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        logger.debug(f"Change {event.kind.value} for session {event.session_id}")
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Change subscriber failed for {event.kind.value} event")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_session(self, session_id: str, workspace_path: Path | str | None = None) -> None:
        """
        Track session_id: clear the cache and pending timers, record the
        session in the store and watch its files.

        Pre-existing files are parsed once the debounce window passes.

        Raises:
            ValueError: If session_id is empty
            WatchError: If the todos directory cannot be watched; the engine
                stays in TRACKING but degraded
        """
        if not session_id:
            raise ValueError("session_id must not be empty")
        self._call(lambda: self._start_session(session_id, workspace_path))

    def stop_session(self) -> None:
        """Cancel pending timers, stop watching and clear the cache."""
        self._call(self._stop_session)

    def refresh(self) -> list[ChangeEvent]:
        """
        Re-parse every matching file now, bypassing the debounce window.

        Cached files that no longer exist are dropped with a 'deleted' event.

        Returns:
            Events emitted by the refresh
        """
        return self._call(self._refresh)

    def post_hook_event(self, event: HookEvent) -> None:
        """Queue a hook event (listener subscriber; any thread)."""
        self._queue.put(_HookReceived(event))

    # ------------------------------------------------------------------
    # Processing loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Run the processing loop on a daemon worker thread. Idempotent."""
        if self._worker_running():
            return
        self._worker = threading.Thread(target=self._run, name="todosync-engine", daemon=True)
        self._worker.start()
        logger.debug("Sync engine worker started")

    def close(self) -> None:
        """Stop the session, detach from the listener and stop the worker."""
        try:
            self.stop_session()
        finally:
            if self._unsubscribe_hooks is not None:
                self._unsubscribe_hooks()
                self._unsubscribe_hooks = None
            worker, self._worker = self._worker, None
            if worker is not None and worker.is_alive():
                self._queue.put(_SHUTDOWN)
                worker.join(timeout=WORKER_JOIN_TIMEOUT)
                logger.debug("Sync engine worker stopped")

    def __enter__(self) -> SyncEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def process_pending(self) -> int:
        """
        Handle every queued message on the calling thread.

        Only valid without a worker thread (one-shot commands, tests).

        Returns:
            Number of messages handled

        Raises:
            RuntimeError: If the worker thread is running
        """
        if self._worker_running():
            raise RuntimeError("process_pending() cannot be used while the worker is running")
        with self._drain_lock:
            previous = self._processing_thread
            self._processing_thread = threading.current_thread()
            try:
                handled = 0
                while True:
                    try:
                        message = self._queue.get_nowait()
                    except queue.Empty:
                        return handled
                    self._handle_message(message)
                    handled += 1
            finally:
                self._processing_thread = previous

    def _worker_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _run(self) -> None:
        self._processing_thread = threading.current_thread()
        try:
            while True:
                message = self._queue.get()
                if message is _SHUTDOWN:
                    break
                self._handle_message(message)
        finally:
            self._processing_thread = None

    def _call(self, fn: Callable[[], T]) -> T:
        """Run fn on the processing path and return its result."""
        if threading.current_thread() is self._processing_thread:
            # Already serialized (e.g. a subscriber issuing a command)
            return fn()
        future: Future = Future()
        self._queue.put(_Command(run=fn, future=future))
        if not self._worker_running():
            self.process_pending()
        return future.result(timeout=COMMAND_TIMEOUT)

    def _defer(self, fn: Callable[[], None]) -> None:
        self._queue.put(_Deferred(run=fn))

    def _handle_message(self, message: Any) -> None:
        try:
            if isinstance(message, _Command):
                if not message.future.set_running_or_notify_cancel():
                    return
                try:
                    result = message.run()
                except Exception as e:
                    message.future.set_exception(e)
                else:
                    message.future.set_result(result)
            elif isinstance(message, _DebounceFired):
                self._on_debounce_fired(message)
            elif isinstance(message, _HookReceived):
                self._on_hook_event(message.event)
            elif isinstance(message, _Deferred):
                message.run()
            else:
                logger.warning(f"Ignoring unknown engine message: {message!r}")
        except Exception:
            logger.exception("Error while processing sync engine message")

    # ------------------------------------------------------------------
    # Session transitions (processing path only)
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        for pending in self._pending.values():
            pending.handle.cancel()
        self._pending.clear()
        self._watcher.stop_watching()
        self._cache.clear()

    def _start_session(self, session_id: str, workspace_path: Path | str | None) -> None:
        self._reset()
        self._active_session_id = session_id
        self._state = EngineState.TRACKING
        self._degraded = False
        self._record_session(session_id, workspace_path)
        logger.info(f"Tracking session {session_id}")

        try:
            self._watcher.start_watching(session_id)
        except WatchError as e:
            self._degraded = True
            logger.error(f"File watching unavailable for session {session_id}: {e}")
            raise

    def _stop_session(self) -> None:
        if self._state is EngineState.IDLE:
            return
        session_id = self._active_session_id
        self._reset()
        self._state = EngineState.IDLE
        self._active_session_id = None
        self._degraded = False
        logger.info(f"Stopped tracking session {session_id}")

    def _record_session(self, session_id: str, workspace_path: Path | str | None) -> None:
        try:
            self.session_store.save(session_id, workspace_path)
        except SessionStoreError as e:
            logger.warning(f"Session {session_id} not recorded in history: {e}")

    def _refresh(self) -> list[ChangeEvent]:
        if self._state is EngineState.IDLE:
            return []
        for pending in self._pending.values():
            pending.handle.cancel()
        self._pending.clear()

        events: list[ChangeEvent] = []
        files = self._watcher.session_files()
        for path in files:
            event = self._parse_and_emit(path)
            if event is not None:
                events.append(event)
        for path in set(self._cache) - set(files):
            event = self._handle_deleted(path)
            if event is not None:
                events.append(event)
        return events

    # ------------------------------------------------------------------
    # Watcher events (processing path only)
    # ------------------------------------------------------------------

    def _on_watch_event(self, event: WatchEvent) -> None:
        if self._state is not EngineState.TRACKING or event.session_id != self._active_session_id:
            logger.debug(f"Discarding {event.kind.value} for {event.path.name} (not tracking)")
            return
        if event.kind is WatchEventKind.DELETED:
            self._handle_deleted(event.path)
        else:
            self._arm_debounce(event.path)

    def _arm_debounce(self, path: Path) -> None:
        previous = self._pending.pop(path, None)
        if previous is not None:
            previous.handle.cancel()
        token = next(self._tokens)
        handle = self._scheduler.call_later(
            self._config.debounce_seconds,
            lambda: self._queue.put(_DebounceFired(path=path, token=token)),
        )
        self._pending[path] = _PendingParse(handle=handle, token=token)

    def _on_debounce_fired(self, message: _DebounceFired) -> None:
        pending = self._pending.get(message.path)
        if (
            self._state is not EngineState.TRACKING
            or pending is None
            or pending.token != message.token
        ):
            logger.debug(f"Discarding stale debounce timer for {message.path.name}")
            return
        del self._pending[message.path]
        self._parse_and_emit(message.path)

    def _parse_and_emit(self, path: Path) -> ChangeEvent | None:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            # Gone before the parse; the watcher then releases its file watch
            event = self._handle_deleted(path)
            self._watcher.handle_directory_change(path)
            return event
        except OSError as e:
            return self._emit_error(path, f"Could not stat task file {path}: {e}")

        if size >= self._config.max_file_bytes:
            return self._emit_error(
                path, f"Task file {path.name} exceeds {self._config.max_file_bytes} bytes"
            )

        try:
            task_list = parse_task_file(path)
        except TaskParseError as e:
            return self._emit_error(path, str(e))

        kind = ChangeKind.UPDATED if path in self._cache else ChangeKind.CREATED
        self._cache[path] = task_list
        event = ChangeEvent(kind=kind, session_id=task_list.session_id, task_list=task_list)
        self._emit(event)
        return event

    def _emit_error(self, path: Path, message: str) -> ChangeEvent:
        session_id = extract_session_id(path) or self._active_session_id or UNKNOWN_SESSION
        logger.warning(f"Failed to parse {path.name}: {message}")
        event = ChangeEvent(kind=ChangeKind.UPDATED, session_id=session_id, error=message)
        self._emit(event)
        return event

    def _handle_deleted(self, path: Path) -> ChangeEvent | None:
        pending = self._pending.pop(path, None)
        if pending is not None:
            pending.handle.cancel()
        previous = self._cache.pop(path, None)
        if previous is None:
            return None
        event = ChangeEvent(
            kind=ChangeKind.DELETED, session_id=previous.session_id, task_list=previous
        )
        self._emit(event)
        return event

    # ------------------------------------------------------------------
    # Hook events (processing path only)
    # ------------------------------------------------------------------

    def _on_hook_event(self, event: HookEvent) -> None:
        payload = event.payload

        if event.kind is HookEventKind.SESSION_UPDATE:
            session_id = payload.session_id
            if not session_id:
                logger.debug("sessionUpdate without a session id")
                return
            if session_id == self._active_session_id:
                self._touch_session(session_id)
                return
            logger.info(f"Claude Code switched to session {session_id}")
            try:
                self._start_session(session_id, payload.cwd)
            except WatchError as e:
                logger.warning(f"Session {session_id} is tracked without file watching: {e}")
            return

        if event.kind is HookEventKind.TODO_UPDATE:
            if self._state is not EngineState.TRACKING:
                logger.debug("todoUpdate while idle")
                return
            if payload.session_id and payload.session_id != self._active_session_id:
                logger.debug(f"todoUpdate for inactive session {payload.session_id}")
                return
            # A hint only: the files stay the single source of task data
            events = self._watcher.reconcile()
            logger.debug(f"todoUpdate rescan produced {len(events)} watch event(s)")
            return

        logger.debug(f"Ignoring {payload.hook_event_name or payload.kind.value} hook")

    def _touch_session(self, session_id: str) -> None:
        try:
            self.session_store.touch(session_id)
        except SessionStoreError as e:
            logger.warning(f"Could not update session {session_id}: {e}")
