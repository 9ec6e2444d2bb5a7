"""
Sync engine: cache, debouncing and the change-event stream.

Usage:
    from todosync.core.sync import SyncEngine

    engine = SyncEngine(config)
    engine.subscribe(print)
    engine.start()
    engine.start_session("abc123")
"""

from todosync.core.sync.engine import SyncEngine
from todosync.core.sync.formatter import (
    STATUS_ORDER,
    export_as_outline,
    export_as_structured,
    export_as_text,
    group_items,
    sort_items,
)
from todosync.core.sync.models import ChangeEvent, ChangeKind, EngineState
from todosync.core.sync.timers import Scheduler, ThreadingScheduler, TimerHandle

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "EngineState",
    "STATUS_ORDER",
    "Scheduler",
    "SyncEngine",
    "ThreadingScheduler",
    "TimerHandle",
    "export_as_outline",
    "export_as_structured",
    "export_as_text",
    "group_items",
    "sort_items",
]
