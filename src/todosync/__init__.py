"""
todosync - Todo synchronization engine for Claude Code sessions.

Mirrors the task list that Claude Code maintains for a session into a
consistent stream of change events, combining a watched directory of JSON
task files with push notifications from Claude Code hooks.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from todosync.core.config.models import SyncConfig
from todosync.core.todos.models import TaskItem, TaskList, TaskPriority, TaskStatus

__all__ = ["SyncConfig", "TaskItem", "TaskList", "TaskPriority", "TaskStatus", "__version__"]
