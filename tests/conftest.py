"""
Pytest configuration and shared fixtures.

Provides fixtures for temp directories, config, the session store, a manual
debounce scheduler and a ready-to-drive SyncEngine.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from todosync.core.config.models import SyncConfig
from todosync.core.session import SessionStore
from todosync.core.sync import SyncEngine

# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def todos_dir(tmp_path):
    """Provide an empty Claude Code todos directory."""
    todos = tmp_path / "claude" / "todos"
    todos.mkdir(parents=True)
    return todos


@pytest.fixture
def config(tmp_path, todos_dir):
    """SyncConfig with every path inside tmp_path."""
    return SyncConfig(
        todos_dir=todos_dir,
        settings_path=tmp_path / "claude" / "settings.json",
        state_dir=tmp_path / "state",
        debounce_ms=300,
    )


@pytest.fixture
def session_store(config):
    """SessionStore backed by the temp state directory."""
    return SessionStore(config.sessions_file, history_limit=config.history_limit)


@pytest.fixture
def config_file(tmp_path, config, monkeypatch):
    """
    JSON config file matching the config fixture, for --config.

    TODOSYNC_* variables are cleared so they cannot override it.
    """
    for name in (
        "TODOSYNC_TODOS_DIR",
        "TODOSYNC_SETTINGS_PATH",
        "TODOSYNC_STATE_DIR",
        "TODOSYNC_DEBOUNCE_MS",
        "TODOSYNC_HISTORY_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config.model_dump(mode="json")), encoding="utf-8")
    return path


# ==============================================================================
# Task File Helpers
# ==============================================================================


@pytest.fixture
def write_tasks(todos_dir) -> Callable[..., Path]:
    """
    Write a task file into the todos directory.

    Usage:
        path = write_tasks("tasks-abc123.json", [{"content": "x"}])
        path = write_tasks("tasks-abc123.json", raw="{broken")
    """

    def _write(name: str, data: Any = None, raw: str | None = None) -> Path:
        path = todos_dir / name
        path.write_text(raw if raw is not None else json.dumps(data), encoding="utf-8")
        return path

    return _write


# ==============================================================================
# Scheduler / Engine Fixtures
# ==============================================================================


@dataclass(eq=False)
class ManualTimer:
    """Timer handle returned by ManualScheduler."""

    due: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(due=self.now + delay, callback=callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        """Timers that are neither cancelled nor fired."""
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> int:
        """Move the clock and fire due timers in due order; returns how many fired."""
        self.now += seconds
        due = sorted((t for t in self.pending if t.due <= self.now + 1e-9), key=lambda t: t.due)
        for timer in due:
            timer.cancelled = True
            timer.callback()
        return len(due)


@pytest.fixture
def scheduler():
    """Manual debounce scheduler."""
    return ManualScheduler()


@pytest.fixture
def engine(config, session_store, scheduler):
    """
    SyncEngine without a worker thread.

    The watchdog observer is a Mock, so raw notifications are injected with
    engine.watcher.notify() and handled by engine.process_pending().
    """
    sync_engine = SyncEngine(
        config,
        session_store=session_store,
        scheduler=scheduler,
        observer_factory=Mock,
    )
    yield sync_engine
    sync_engine.close()


@pytest.fixture
def settle(engine, scheduler) -> Callable[..., None]:
    """Drain the queue, let the quiet window pass, then drain again."""

    def _settle(seconds: float = 0.3) -> None:
        engine.process_pending()
        scheduler.advance(seconds)
        engine.process_pending()

    return _settle


@pytest.fixture
def events(engine) -> list:
    """Every ChangeEvent the engine emits."""
    received: list = []
    engine.subscribe(received.append)
    return received
