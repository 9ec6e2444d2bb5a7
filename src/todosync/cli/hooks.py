"""
Hook management commands for Claude Code integration.

Install, remove and validate the hook entries that push session and task
list notifications from Claude Code to a running todosync listener.
`todosync watch` installs them automatically; these commands are for
inspecting or repairing the settings by hand.
"""

import json

import httpx
import typer
from rich.table import Table

from todosync.cli.common import console, get_config
from todosync.core.hooks import GENERAL_PATH, HookInstaller

app = typer.Typer(
    name="hooks",
    help="Manage Claude Code hooks that notify todosync",
    no_args_is_help=True,
)

PING_TIMEOUT = 5.0


def _installer(ctx: typer.Context) -> HookInstaller:
    config = get_config(ctx)
    return HookInstaller(config.settings_path, task_tool_name=config.task_tool_name)


@app.command(name="install")
def install(
    ctx: typer.Context,
    url: str = typer.Option(
        ...,
        "--url",
        "-u",
        help="Base URL of the running listener, e.g. http://127.0.0.1:53817",
    ),
) -> None:
    """
    Install todosync hooks in Claude Code settings.

    Previous todosync entries (whatever port they used) are replaced; all
    other hooks are left untouched.

    Examples:
        todosync hooks install --url http://127.0.0.1:53817
    """
    installer = _installer(ctx)
    console.print(f"[blue]Installing hooks in:[/blue] {installer.settings_path}")

    result = installer.install(url)

    if result.success:
        console.print(f"[green]✓[/green] {result.message}")
        if result.hooks_installed:
            console.print(f"  Installed hooks: {', '.join(result.hooks_installed)}")
        if result.backup_file:
            console.print(f"  Backup of corrupt settings: {result.backup_file}")
        for issue in result.issues:
            if issue.severity == "warning":
                console.print(f"[yellow]⚠[/yellow] {issue.message}")
            elif issue.severity == "info":
                console.print(f"[blue]ℹ[/blue] {issue.message}")
        raise typer.Exit(0)

    console.print(f"[red]✗[/red] {result.message}")
    for issue in result.issues:
        if issue.severity == "error":
            console.print(f"[red]Error:[/red] {issue.message}")
        else:
            console.print(f"[yellow]Warning:[/yellow] {issue.message}")
    raise typer.Exit(1)


@app.command(name="uninstall")
def uninstall(ctx: typer.Context) -> None:
    """
    Remove todosync hooks from Claude Code settings.

    Hook categories left empty are removed entirely.
    """
    installer = _installer(ctx)
    if installer.uninstall():
        console.print(f"[green]✓[/green] Hooks removed from {installer.settings_path}")
    else:
        console.print("[dim]No todosync hooks found[/dim]")


@app.command(name="check")
def check(ctx: typer.Context) -> None:
    """
    Validate hook installation.

    Checks that the settings file exists, is valid JSON and contains both
    the session and the task-list hooks.
    """
    installer = _installer(ctx)
    console.print(f"[blue]Checking hooks in:[/blue] {installer.settings_path}\n")

    issues = installer.validate()
    if not issues:
        console.print("[green]✓[/green] All hooks validated successfully")
        raise typer.Exit(0)

    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]

    table = Table(title="Hook Validation Issues", show_header=True, header_style="bold")
    table.add_column("Severity", style="white", width=10)
    table.add_column("Issue", style="white")
    table.add_column("Hook/File", style="dim")

    for issue in errors:
        table.add_row("[red]ERROR[/red]", issue.message, issue.hook_name or issue.file_path or "")
    for issue in warnings:
        table.add_row(
            "[yellow]WARNING[/yellow]", issue.message, issue.hook_name or issue.file_path or ""
        )

    console.print(table)
    console.print()

    if errors:
        console.print(f"[red]✗[/red] Found {len(errors)} error(s)")
        console.print("  Run 'todosync watch' or 'todosync hooks install' to fix")
        raise typer.Exit(1)
    console.print(f"[yellow]⚠[/yellow] Found {len(warnings)} warning(s)")
    raise typer.Exit(1)


@app.command(name="ping")
def ping(
    url: str = typer.Option(
        ...,
        "--url",
        "-u",
        help="Base URL of the running listener",
    ),
) -> None:
    """
    Send a test notification to a running listener.

    Posts to the generic hook endpoint, which subscribers ignore.
    """
    target = f"{url.rstrip('/')}{GENERAL_PATH}"
    try:
        response = httpx.post(
            target,
            json={"hook_event_name": "Ping", "source": "todosync"},
            timeout=PING_TIMEOUT,
        )
    except httpx.RequestError as e:
        console.print(f"[red]✗[/red] Listener not reachable at {target}: {e}")
        raise typer.Exit(1)

    if response.status_code != 200:
        console.print(f"[red]✗[/red] Listener answered {response.status_code}: {response.text}")
        raise typer.Exit(1)

    try:
        body = response.json()
    except json.JSONDecodeError:
        body = response.text
    console.print(f"[green]✓[/green] Listener at {url} is up: {body}")
