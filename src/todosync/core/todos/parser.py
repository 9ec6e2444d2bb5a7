"""
Tolerant parser for Claude Code task files.

Claude Code has written its task list in several shapes over time, so the
parser accepts all of them and coerces each item field-by-field:

    ["write tests", ...]                    bare sequence
    {"tasks": [...]} / {"todos": [...]}      wrapped sequence
    {"items": [...]}                         wrapped sequence
    {"content": "write tests", ...}          single free-form item

Anything else parses to an empty list rather than an error. Only undecodable
bytes and invalid JSON raise TaskParseError.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from todosync.core.exceptions import TaskParseError
from todosync.core.todos.models import TaskItem, TaskList, TaskPriority, TaskStatus

TASK_FILE_SUFFIX = ".json"
MAX_TASK_FILE_BYTES = 10 * 1024 * 1024
UNKNOWN_SESSION = "unknown"

# Session ids are opaque; anything but path separators, dots and whitespace.
_ID = r"[^/\\.\s]"

# First match wins; the bare <id>.json pattern is the fallback.
SESSION_ID_PATTERNS = [
    re.compile(rf"^(?:tasks|todos)-(?P<id>{_ID}+)\.json$", re.IGNORECASE),
    re.compile(rf"^(?P<id>{_ID}+?)-(?:tasks|todos)\.json$", re.IGNORECASE),
    re.compile(rf"^(?:tasks|todos)_(?P<id>{_ID}+)\.json$", re.IGNORECASE),
    re.compile(rf"^(?P<id>{_ID}+?)-agent-{_ID}+\.json$", re.IGNORECASE),
    re.compile(rf"^(?P<id>{_ID}+)\.json$", re.IGNORECASE),
]

CONTENT_KEYS = ("content", "text", "description", "title", "name")
ID_KEYS = ("id", "uuid", "key")
LIST_KEYS = ("tasks", "todos", "items")


def extract_session_id(source_path: Path | str) -> str | None:
    """
    Derive the session id from a task file name.

    Args:
        source_path: Path (or bare file name) of a task file

    Returns:
        Session id, or None if the name matches no known pattern

    Example:
        >>> extract_session_id("/home/me/.claude/todos/tasks-abc123.json")
        'abc123'
        >>> extract_session_id("abc123-tasks.json")
        'abc123'
    """
    filename = Path(source_path).name
    for pattern in SESSION_ID_PATTERNS:
        match = pattern.match(filename)
        if match:
            return match.group("id")
    return None


def is_plausible_task_file(path: Path | str, max_bytes: int = MAX_TASK_FILE_BYTES) -> bool:
    """
    Cheap pre-check before reading a file.

    A plausible task file is a regular .json file that is non-empty and
    smaller than max_bytes.
    """
    path = Path(path)
    if path.suffix.lower() != TASK_FILE_SUFFIX:
        return False
    try:
        stat = path.stat()
    except OSError:
        return False
    return path.is_file() and 0 < stat.st_size < max_bytes


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _first_present(item: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def coerce_status(raw: Any) -> TaskStatus:
    """Infer a status by substring match, defaulting to pending."""
    text = _as_text(raw).lower()
    if "progress" in text or "active" in text:
        return TaskStatus.IN_PROGRESS
    if "complete" in text or "done" in text or "finish" in text:
        return TaskStatus.COMPLETED
    return TaskStatus.PENDING


def coerce_priority(raw: Any) -> TaskPriority:
    """Infer a priority by substring match, defaulting to medium."""
    text = _as_text(raw).lower()
    if "high" in text or "urgent" in text or text == "3":
        return TaskPriority.HIGH
    if "low" in text or text == "1":
        return TaskPriority.LOW
    return TaskPriority.MEDIUM


def parse_task_item(raw: Any, index: int) -> TaskItem:
    """
    Coerce one raw entry into a TaskItem.

    Strings become the item content; dicts are read field by field; any
    other value yields an empty default item.
    """
    if isinstance(raw, str):
        return TaskItem(id=str(index), content=raw)

    if not isinstance(raw, dict):
        return TaskItem(id=str(index))

    item_id = _first_present(raw, ID_KEYS)
    content = _first_present(raw, CONTENT_KEYS)
    return TaskItem(
        id=_as_text(item_id) if item_id is not None else str(index),
        content=_as_text(content),
        status=coerce_status(_first_present(raw, ("status", "state"))),
        priority=coerce_priority(_first_present(raw, ("priority", "importance"))),
    )


def _raw_items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []
    for key in LIST_KEYS:
        if isinstance(data.get(key), list):
            return data[key]
    if _first_present(data, CONTENT_KEYS) is not None:
        return [data]
    return []


def parse_task_bytes(
    data: bytes | str,
    source_path: Path | str,
    last_updated: datetime | None = None,
) -> TaskList:
    """
    Parse raw task file content.

    Args:
        data: File content
        source_path: Where the content came from (used for the session id)
        last_updated: Modification time to record (defaults to now)

    Returns:
        TaskList with zero or more items

    Raises:
        TaskParseError: If the content is not UTF-8 or not valid JSON
    """
    source_path = Path(source_path)
    try:
        text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
    except UnicodeDecodeError as e:
        raise TaskParseError(source_path, f"Task file is not valid UTF-8: {e}") from e

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise TaskParseError(source_path, f"Invalid JSON in task file {source_path.name}: {e}") from e

    items = [parse_task_item(raw, index) for index, raw in enumerate(_raw_items(parsed))]
    return TaskList(
        session_id=extract_session_id(source_path) or UNKNOWN_SESSION,
        items=items,
        source_path=source_path,
        last_updated=last_updated or datetime.now(timezone.utc),
    )


def parse_task_file(path: Path | str) -> TaskList:
    """
    Read and parse a single task file.

    Raises:
        TaskParseError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except FileNotFoundError as e:
        raise TaskParseError(path, f"Task file not found: {path}") from e
    except OSError as e:
        raise TaskParseError(path, f"Could not read task file {path}: {e}") from e

    return parse_task_bytes(data, path, last_updated=mtime)


def parse_task_files(paths: list[Path]) -> dict[Path, TaskList | TaskParseError]:
    """Parse several files, collecting failures instead of raising."""
    results: dict[Path, TaskList | TaskParseError] = {}
    for path in paths:
        try:
            results[Path(path)] = parse_task_file(path)
        except TaskParseError as e:
            results[Path(path)] = e
    return results
