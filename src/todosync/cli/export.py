"""
todosync CLI - export and stats commands.

One-shot readers of the todos directory: they parse the task files of a
session and print them, without watching anything.
"""

from enum import Enum
from pathlib import Path

import typer
from rich.table import Table

from todosync.cli.common import (
    console,
    get_config,
    get_session_store,
    load_task_lists,
    resolve_session_id,
)
from todosync.core.sync import export_as_outline, export_as_structured, export_as_text
from todosync.core.todos import TaskList, TodoStats


class ExportFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


_RENDERERS = {
    ExportFormat.TEXT: export_as_text,
    ExportFormat.JSON: export_as_structured,
    ExportFormat.MARKDOWN: export_as_outline,
}


def _select_lists(
    ctx: typer.Context, session_id: str | None, all_sessions: bool
) -> list[TaskList]:
    config = get_config(ctx)
    if all_sessions:
        return load_task_lists(config.todos_dir, None)
    store = get_session_store(config)
    return load_task_lists(config.todos_dir, resolve_session_id(store, session_id))


def export(
    ctx: typer.Context,
    session_id: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session to export (default: last recorded session)",
    ),
    all_sessions: bool = typer.Option(
        False,
        "--all",
        help="Export every task file in the todos directory",
    ),
    output_format: ExportFormat = typer.Option(
        ExportFormat.TEXT,
        "--format",
        "-f",
        help="Output format",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write to this file instead of stdout",
    ),
) -> None:
    """
    Export a session's task lists.

    Items are grouped by status and sorted by priority, then content.

    Examples:
        todosync export                         # last session, plain text
        todosync export -s abc123 -f markdown   # one session as a checklist
        todosync export --all -f json -o todos.json
    """
    task_lists = _select_lists(ctx, session_id, all_sessions)
    rendered = _RENDERERS[output_format](task_lists)

    if output is None:
        typer.echo(rendered, nl=not rendered.endswith("\n"))
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered if rendered.endswith("\n") else rendered + "\n", encoding="utf-8")
    console.print(f"[green]✓[/green] Exported {len(task_lists)} task list(s) to {output}")


def stats(
    ctx: typer.Context,
    session_id: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session to summarize (default: last recorded session)",
    ),
    all_sessions: bool = typer.Option(
        False,
        "--all",
        help="Summarize every task file in the todos directory",
    ),
) -> None:
    """
    Show status and priority counts for a session's task lists.

    Examples:
        todosync stats
        todosync stats --session abc123
    """
    task_lists = _select_lists(ctx, session_id, all_sessions)
    totals = TodoStats.from_task_lists(task_lists)

    table = Table(title="Task Statistics", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Files", str(totals.file_count))
    table.add_row("Total", str(totals.total))
    table.add_row("Pending", str(totals.pending))
    table.add_row("In progress", str(totals.in_progress))
    table.add_row("Completed", str(totals.completed))
    table.add_row("High priority", str(totals.high_priority))
    table.add_row("Medium priority", str(totals.medium_priority))
    table.add_row("Low priority", str(totals.low_priority))

    console.print(table)
    if totals.total:
        console.print(f"[dim]Completion: {totals.completion_rate:.0%}[/dim]")
