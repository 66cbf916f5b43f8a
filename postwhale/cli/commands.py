"""CLI commands for postwhale.

Talks to the backend worker over the stdio bridge (invoke, status) and runs the
sidebar tree filter over a JSON dump (filter).
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from postwhale import __logo__, __version__
from postwhale.cli.shared.logging_utils import configure_command_logging

app = typer.Typer(
    name="postwhale",
    help=f"{__logo__} postwhale - explore and call internal HTTP services",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} postwhale v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """postwhale - explore and call internal HTTP services."""
    pass


@app.command()
def version():
    """Show the postwhale version."""
    console.print(f"{__logo__} postwhale v{__version__}")


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(
    probe: bool = typer.Option(False, "--probe", help="Start the worker and report its process state"),
    debug: bool = typer.Option(False, "--debug", help="Print debug logs to stderr"),
):
    """Show configuration and worker status."""
    from postwhale.config.access import get_config
    from postwhale.config.loader import get_config_path

    configure_command_logging("status", debug=debug, logs=False)
    config_path = get_config_path()
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    console.print(f"{__logo__} postwhale Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Storage: {config.storage.path} {'[green]✓[/green]' if config.storage.path.exists() else '[dim]not created[/dim]'}")
    console.print(f"Worker: [cyan]{' '.join(config.bridge.command)}[/cyan]")
    console.print(f"Timeout: {config.bridge.timeout_seconds:g}s")

    if not probe:
        return

    from postwhale.bridge.client import WorkerBridge
    from postwhale.utils.exceptions import PostwhaleError, format_error

    async def _probe() -> dict[str, Any]:
        async with WorkerBridge.from_config(config.bridge) as bridge:
            return bridge.status()

    try:
        state = asyncio.run(_probe())
    except PostwhaleError as e:
        console.print(f"Process: [red]✗ {escape(format_error(e))}[/red]")
        raise typer.Exit(1)
    console.print(f"Process: [green]✓ pid {state['pid']}[/green] (generation {state['generation']})")


# ============================================================================
# Invoke
# ============================================================================


def _parse_data(data: str | None) -> Any:
    if data is None:
        return {}
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --data JSON: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def invoke(
    action: str = typer.Argument(..., help="Worker action name, e.g. getRepositories"),
    data: str = typer.Option(None, "--data", "-d", help="JSON payload for the action"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-call timeout in seconds"),
    debug: bool = typer.Option(False, "--debug", help="Print debug logs to stderr"),
    logs: bool = typer.Option(False, "--logs", help="Write logs to ~/.postwhale/logs/invoke.log"),
):
    """Send one action to the worker and print its result."""
    from postwhale.bridge.client import WorkerBridge
    from postwhale.config.access import get_config
    from postwhale.utils.exceptions import PostwhaleError, format_error

    payload = _parse_data(data)
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    configure_command_logging("invoke", debug=debug, logs=logs, level=config.logging.level)

    async def _run() -> Any:
        async with WorkerBridge.from_config(config.bridge) as bridge:
            return await bridge.invoke(action, payload, timeout=timeout)

    try:
        result = asyncio.run(_run())
    except PostwhaleError as e:
        console.print(f"[red]{escape(format_error(e, include_code=True))}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(result, ensure_ascii=False))


# ============================================================================
# Filter
# ============================================================================


def _load_tree(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Failed to read tree from {path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    if not isinstance(raw, dict):
        console.print(f"[red]Tree file {path} must contain a JSON object[/red]")
        raise typer.Exit(1)
    return raw


@app.command("filter")
def filter_command(
    tree_json: Path = typer.Argument(..., help="JSON file with repositories, services and endpoints"),
    mode: str = typer.Option(None, "--mode", "-m", help="all | favorites | filters (defaults to the saved view)"),
    search: str = typer.Option("", "--search", "-s", help="Case-insensitive search text"),
    method: list[str] = typer.Option(None, "--method", help="HTTP method filter (repeatable; defaults to saved filters)"),
):
    """Print which tree items are visible for a view mode, search and filters."""
    from postwhale.config.access import get_config
    from postwhale.state.storage import FavoritesStore, JsonFileStore
    from postwhale.state.view_state import ViewStateStore
    from postwhale.tree.filter import Favorites, FilterState, ViewMode, filter_tree
    from postwhale.tree.models import Endpoint, Repository, Service
    from postwhale.utils.helpers import safe_dict, safe_list

    configure_command_logging("filter", debug=False, logs=False)
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    tree = _load_tree(tree_json)
    store = JsonFileStore(config.storage.path)
    view_state = ViewStateStore(store)

    if mode is None:
        view_mode = view_state.load_view()
    else:
        try:
            view_mode = ViewMode(mode)
        except ValueError:
            console.print(f"[red]Unknown mode: {mode}[/red]")
            raise typer.Exit(1)
    filter_state = FilterState(methods=[m.upper() for m in method]) if method else view_state.load_filters()

    try:
        if "favorites" in tree:
            fav = safe_dict(tree["favorites"])
            favorites = Favorites(
                repos={int(v) for v in safe_list(fav.get("repos"))},
                services={int(v) for v in safe_list(fav.get("services"))},
                endpoints={int(v) for v in safe_list(fav.get("endpoints"))},
            )
        else:
            favorites = FavoritesStore(store).load()
        repositories = [Repository.from_dict(r) for r in safe_list(tree.get("repositories"))]
        services = [Service.from_dict(s) for s in safe_list(tree.get("services"))]
        endpoints = [Endpoint.from_dict(e) for e in safe_list(tree.get("endpoints"))]
    except (TypeError, ValueError) as e:
        console.print(f"[red]Invalid tree data in {tree_json}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    result = filter_tree(
        repositories,
        services,
        endpoints,
        view_mode,
        search,
        filter_state,
        favorites,
    )

    table = Table(title=f"Visible items ({view_mode.value})")
    table.add_column("Kind", style="cyan")
    table.add_column("IDs")
    table.add_row("repositories", ", ".join(str(i) for i in sorted(result.repository_ids)) or "-")
    table.add_row("services", ", ".join(str(i) for i in sorted(result.service_ids)) or "-")
    table.add_row("endpoints", ", ".join(str(i) for i in sorted(result.endpoint_ids)) or "-")
    console.print(table)


if __name__ == "__main__":
    app()
