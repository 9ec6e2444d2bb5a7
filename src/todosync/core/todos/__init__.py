"""
Task list models and the tolerant task file parser.

Usage:
    from todosync.core.todos import parse_task_file

    task_list = parse_task_file(Path("~/.claude/todos/tasks-abc123.json").expanduser())
    print(task_list.stats())
"""

from todosync.core.todos.models import TaskItem, TaskList, TaskPriority, TaskStatus, TodoStats
from todosync.core.todos.parser import (
    UNKNOWN_SESSION,
    extract_session_id,
    is_plausible_task_file,
    parse_task_bytes,
    parse_task_file,
    parse_task_files,
)

__all__ = [
    "TaskItem",
    "TaskList",
    "TaskPriority",
    "TaskStatus",
    "TodoStats",
    "UNKNOWN_SESSION",
    "extract_session_id",
    "is_plausible_task_file",
    "parse_task_bytes",
    "parse_task_file",
    "parse_task_files",
]
