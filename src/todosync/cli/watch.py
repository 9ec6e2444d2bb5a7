"""
todosync CLI - watch command.

Application root for the long-running mode: builds every service once,
wires them together and prints change events until interrupted.
"""

import logging
import time
from pathlib import Path

import typer

from todosync.cli.common import console, get_config, get_session_store
from todosync.core.exceptions import ListenerBindError, WatchError
from todosync.core.hooks import HookInstaller, HookListener
from todosync.core.sync import ChangeEvent, ChangeKind, SyncEngine

logger = logging.getLogger(__name__)

_KIND_STYLES = {
    ChangeKind.CREATED: "green",
    ChangeKind.UPDATED: "blue",
    ChangeKind.DELETED: "red",
}


def format_change(event: ChangeEvent) -> str:
    """One console line for a change event."""
    style = _KIND_STYLES[event.kind]
    prefix = f"[{style}]{event.kind.value:<7}[/{style}] [cyan]{event.session_id}[/cyan]"
    if event.error is not None:
        return f"{prefix} [red]error:[/red] {event.error}"
    if event.task_list is None:
        return prefix
    counts = event.task_list.stats()
    return (
        f"{prefix} {event.task_list.source_path.name}: "
        f"{counts.pending} pending, {counts.in_progress} in progress, "
        f"{counts.completed} completed"
    )


def watch(
    ctx: typer.Context,
    session_id: str | None = typer.Option(
        None,
        "--session",
        "-s",
        help="Session to track (default: last recorded session)",
    ),
    new: bool = typer.Option(
        False,
        "--new",
        help="Start a fresh session id",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace of the session (default: current directory)",
    ),
    no_hooks: bool = typer.Option(
        False,
        "--no-hooks",
        help="Only watch files; do not start the listener or touch Claude settings",
    ),
    keep_hooks: bool = typer.Option(
        False,
        "--keep-hooks",
        help="Leave the hook entries installed on exit",
    ),
) -> None:
    """
    Mirror a session's task list and print every change.

    Starts the hook listener on an ephemeral loopback port, installs the
    hooks that point at it, then watches the todos directory. If the
    listener cannot start, file watching still works.

    Examples:
        todosync watch --new          # fresh session in this directory
        todosync watch -s abc123      # follow an existing session
        todosync watch --no-hooks     # files only
    """
    if new and session_id:
        console.print("[red]Error:[/red] --new and --session are mutually exclusive")
        raise typer.Exit(2)

    config = get_config(ctx)
    store = get_session_store(config)
    if session_id is None:
        last_id = None if new else store.last_id()
        session_id = last_id or store.generate_id()

    listener: HookListener | None = None
    installer: HookInstaller | None = None
    if not no_hooks:
        listener = HookListener(config.listener, task_tool_name=config.task_tool_name)
        try:
            url = listener.start()
        except ListenerBindError as e:
            console.print(
                f"[yellow]⚠[/yellow] Hook listener unavailable, watching files only: {e}"
            )
            listener = None
        else:
            installer = HookInstaller(config.settings_path, task_tool_name=config.task_tool_name)
            result = installer.install(url)
            for issue in result.issues:
                console.print(f"[yellow]⚠[/yellow] {issue.message}")
            if result.success:
                console.print(f"[blue]Hooks:[/blue] {url} ({installer.settings_path})")

    engine = SyncEngine(config, session_store=store, listener=listener)
    engine.subscribe(lambda event: console.print(format_change(event)))
    engine.start()

    try:
        try:
            engine.start_session(session_id, (workspace or Path.cwd()).resolve())
        except WatchError as e:
            console.print(f"[red]✗[/red] Cannot watch {config.todos_dir}: {e}")
            if listener is None:
                raise typer.Exit(1)
            console.print("[yellow]⚠[/yellow] Continuing with hook notifications only")

        console.print(f"[bold]Session:[/bold] {session_id}")
        console.print(f"[dim]Watching {config.todos_dir}. Press Ctrl+C to stop.[/dim]")
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping...[/dim]")
    finally:
        engine.close()
        if listener is not None:
            listener.stop()
        if installer is not None and not keep_hooks:
            installer.uninstall()
        logger.debug("watch shut down")
