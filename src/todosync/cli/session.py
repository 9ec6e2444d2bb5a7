"""
todosync CLI - session history commands.
"""

from datetime import datetime
from pathlib import Path

import typer
from rich.table import Table

from todosync.cli.common import console, get_config, get_session_store, load_task_lists
from todosync.core.exceptions import SessionStoreError
from todosync.core.todos import TodoStats

app = typer.Typer(
    name="session",
    help="Manage the recorded Claude Code sessions",
    no_args_is_help=True,
)


def _format_time(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


@app.command(name="new")
def new(
    ctx: typer.Context,
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace the session runs in (default: current directory)",
    ),
) -> None:
    """
    Generate a session id and record it as the last session.

    The id is printed alone on stdout so it can be passed on, e.g.
    claude --session-id "$(todosync session new)".
    """
    config = get_config(ctx)
    store = get_session_store(config)
    session_id = store.generate_id()
    try:
        store.save(session_id, (workspace or Path.cwd()).resolve())
    except SessionStoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    typer.echo(session_id)


@app.command(name="last")
def last(ctx: typer.Context) -> None:
    """Print the last recorded session id."""
    store = get_session_store(get_config(ctx))
    session_id = store.last_id()
    if session_id is None:
        console.print("[yellow]No session recorded yet[/yellow]")
        raise typer.Exit(1)
    typer.echo(session_id)


@app.command(name="list")
def list_sessions(
    ctx: typer.Context,
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Only sessions recorded for this workspace",
    ),
) -> None:
    """List recorded sessions, most recent first."""
    store = get_session_store(get_config(ctx))
    entries = store.history(workspace.resolve() if workspace else None)
    if not entries:
        console.print("[dim]No sessions recorded[/dim]")
        return

    last_id = store.last_id()
    table = Table(title="Sessions", show_header=True, header_style="bold")
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Started")
    table.add_column("Last active")
    table.add_column("Workspace", style="dim")

    for entry in entries:
        marker = " [green]*[/green]" if entry.id == last_id else ""
        table.add_row(
            f"{entry.id}{marker}",
            _format_time(entry.started_at),
            _format_time(entry.last_active_at),
            entry.workspace_path or "",
        )
    console.print(table)


@app.command(name="show")
def show(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session id"),
) -> None:
    """Show one session and the current counts of its task files."""
    config = get_config(ctx)
    store = get_session_store(config)
    entry = store.find(session_id)
    if entry is None:
        console.print(f"[red]Error:[/red] Unknown session: {session_id}")
        raise typer.Exit(1)

    totals = TodoStats.from_task_lists(load_task_lists(config.todos_dir, session_id))
    console.print(f"[bold]Session:[/bold] {entry.id}")
    console.print(f"  Started:     {_format_time(entry.started_at)}")
    console.print(f"  Last active: {_format_time(entry.last_active_at)}")
    console.print(f"  Workspace:   {entry.workspace_path or '-'}")
    console.print(
        f"  Tasks:       {totals.total} in {totals.file_count} file(s) "
        f"({totals.pending} pending, {totals.in_progress} in progress, "
        f"{totals.completed} completed)"
    )


@app.command(name="prune")
def prune(
    ctx: typer.Context,
    days: int | None = typer.Option(
        None,
        "--days",
        "-d",
        min=0,
        help="Drop sessions inactive for more than this many days (default: config)",
    ),
) -> None:
    """Remove sessions that have not been active recently."""
    config = get_config(ctx)
    store = get_session_store(config)
    max_age = days if days is not None else config.prune_days
    try:
        removed = store.prune(max_age)
    except SessionStoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Pruned {removed} session(s) older than {max_age} day(s)")
