"""
todosync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

from pathlib import Path

import typer

from todosync import __version__
from todosync.cli import export, hooks, session, watch
from todosync.cli.common import console, setup_logging

app = typer.Typer(
    name="todosync",
    help="Mirror Claude Code task lists into a stream of change events",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"todosync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file to use instead of ~/.config/todosync/config.json",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    todosync - Todo synchronization for Claude Code sessions.

    Watches the task files Claude Code writes under ~/.claude/todos and
    listens for its hook notifications, keeping one consistent view of the
    current session's task list.

    Quick Start:
        todosync watch --new            # Track a fresh session
        todosync export -f markdown     # Checklist of the last session
        todosync session list           # Recorded sessions
    """
    setup_logging(debug)
    ctx.obj = {"debug": debug, "config_path": config_path}


app.command(name="watch")(watch.watch)
app.command(name="export")(export.export)
app.command(name="stats")(export.stats)
app.add_typer(session.app, name="session")
app.add_typer(hooks.app, name="hooks")


def cli_main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "cli_main"]
