"""
Shared helpers for todosync CLI commands.
"""

import logging
import sys
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from todosync.core.config import SyncConfig, load_config
from todosync.core.exceptions import WatchError
from todosync.core.session import SessionStore
from todosync.core.todos import TaskList, parse_task_files
from todosync.core.watcher import matches_session

console = Console()
err_console = Console(stderr=True)


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for the CLI.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def get_config(ctx: typer.Context) -> SyncConfig:
    """Load the configuration selected on the root command."""
    obj = ctx.obj or {}
    try:
        return load_config(obj.get("config_path"))
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(1)


def get_session_store(config: SyncConfig) -> SessionStore:
    return SessionStore(config.sessions_file, history_limit=config.history_limit)


def resolve_session_id(store: SessionStore, session_id: str | None) -> str:
    """An explicit id, or the last recorded session."""
    if session_id:
        return session_id
    last = store.last_id()
    if last is None:
        console.print("[red]Error:[/red] No session recorded yet; pass --session")
        raise typer.Exit(1)
    return last


def session_files(todos_dir: Path, session_id: str | None) -> list[Path]:
    """
    Task files in todos_dir, limited to one session unless session_id is None.

    Raises:
        WatchError: If the directory cannot be listed
    """
    if not todos_dir.exists():
        return []
    try:
        candidates = sorted(p for p in todos_dir.iterdir() if p.is_file())
    except OSError as e:
        raise WatchError(f"Cannot list {todos_dir}: {e}", todos_dir) from e
    if session_id is None:
        return [p for p in candidates if p.suffix == ".json"]
    return [p for p in candidates if matches_session(p.name, session_id)]


def load_task_lists(todos_dir: Path, session_id: str | None) -> list[TaskList]:
    """Parse the matching task files, reporting (not raising) parse failures."""
    try:
        paths = session_files(todos_dir, session_id)
    except WatchError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    task_lists: list[TaskList] = []
    for path, result in parse_task_files(paths).items():
        if isinstance(result, TaskList):
            task_lists.append(result)
        else:
            err_console.print(f"[yellow]Warning:[/yellow] Skipping {path.name}: {result}")
    return task_lists
