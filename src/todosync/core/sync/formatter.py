"""
Export renderers for cached task lists.

All three formats group items by status (pending, in progress, completed)
and sort each group by priority, high first, then by content. Lists are
rendered in source path order. The functions are pure: they only read the
lists they are given.
"""

from __future__ import annotations

import json
from typing import Any

from todosync.core.todos.models import TaskItem, TaskList, TaskPriority, TaskStatus, TodoStats

STATUS_ORDER = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)

_CHECKBOX = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def sort_items(items: list[TaskItem]) -> list[TaskItem]:
    """Priority high to low, then lexically by content, then by id."""
    return sorted(items, key=lambda item: (item.priority.rank, item.content, item.id))


def group_items(task_list: TaskList) -> dict[TaskStatus, list[TaskItem]]:
    """Sorted items of one list keyed by status, in STATUS_ORDER."""
    return {status: sort_items(task_list.by_status(status)) for status in STATUS_ORDER}


def _ordered(task_lists: list[TaskList]) -> list[TaskList]:
    return sorted(task_lists, key=lambda task_list: str(task_list.source_path))


def _priority_tag(priority: TaskPriority) -> str:
    return "" if priority == TaskPriority.MEDIUM else f" ({priority.value})"


def export_as_text(task_lists: list[TaskList]) -> str:
    """Plain-text report, one section per task file."""
    lines = ["Todos", "====="]
    if not task_lists:
        lines.append("")
        lines.append("No task lists.")
        return "\n".join(lines) + "\n"

    for task_list in _ordered(task_lists):
        stats = task_list.stats()
        lines.append("")
        header = f"Session {task_list.session_id} ({task_list.source_path.name})"
        lines.append(header)
        lines.append("-" * len(header))
        for status, items in group_items(task_list).items():
            if not items:
                continue
            lines.append(f"{status.label} ({len(items)}):")
            for item in items:
                lines.append(f"  - {item.content}{_priority_tag(item.priority)}")
        lines.append(
            f"{stats.completed}/{stats.total} completed, "
            f"{stats.in_progress} in progress, {stats.pending} pending"
        )
    return "\n".join(lines) + "\n"


def _item_dict(item: TaskItem) -> dict[str, Any]:
    return item.model_dump(mode="json")


def export_as_structured(task_lists: list[TaskList]) -> str:
    """
    JSON document with aggregate stats and per-file grouped items.

    Example output:
        {
          "stats": {"total": 2, "pending": 1, ...},
          "task_lists": [
            {"session_id": "abc123", "source_path": "...", "last_updated": "...",
             "stats": {...}, "groups": {"pending": [...], "in_progress": [], ...}}
          ]
        }
    """
    ordered = _ordered(task_lists)
    document = {
        "stats": TodoStats.from_task_lists(ordered).model_dump(mode="json"),
        "task_lists": [
            {
                "session_id": task_list.session_id,
                "source_path": str(task_list.source_path),
                "last_updated": task_list.last_updated.isoformat(),
                "stats": task_list.stats().model_dump(mode="json"),
                "groups": {
                    status.value: [_item_dict(item) for item in items]
                    for status, items in group_items(task_list).items()
                },
            }
            for task_list in ordered
        ],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_as_outline(task_lists: list[TaskList]) -> str:
    """Markdown checklist, one '##' section per task file."""
    lines = ["# Todos"]
    if not task_lists:
        lines.append("")
        lines.append("_No task lists._")
        return "\n".join(lines) + "\n"

    for task_list in _ordered(task_lists):
        lines.append("")
        lines.append(f"## Session `{task_list.session_id}`")
        for status, items in group_items(task_list).items():
            if not items:
                continue
            lines.append("")
            lines.append(f"### {status.label}")
            lines.append("")
            for item in items:
                text = f"**{item.content}**" if item.priority == TaskPriority.HIGH else item.content
                lines.append(f"- {_CHECKBOX[status]} {text}")
    return "\n".join(lines) + "\n"
