"""CLI for the roster keeper.

Every command bootstraps storage the same way the app does (preference,
timeout race, fallback), runs one roster operation and prints the result.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from roster.bootstrap import BACKEND_PREFERENCE_KEY, BackendKind, BootstrapResult, bootstrap_storage, select_backend
from roster.config.settings import settings
from roster.core.diagnostics import get_events
from roster.core.logger import setup_logger
from roster.documents.commands import CommandResult, calculate_total_cost, filter_players
from roster.documents.snapshot import WeekView
from roster.services.roster_service import RosterService
from roster.storage.local_store import LocalStore

# Initialize Rich console for output
console = Console()

# Initialize Typer app
app = typer.Typer(
    name="roster",
    help="Roster Keeper CLI - manage a fantasy squad week by week",
    add_completion=False,
)

DEFAULT_LOCAL_STORE = Path("data") / "local-store.json"
DEFAULT_HOST = "127.0.0.1"

T = TypeVar("T")


class ConsoleNotifier:
    """Shows alerts in the terminal."""

    def show_alert(self, message: str) -> None:
        console.print(Panel(message, title="Alert", border_style="yellow"))


def _setup_logging(debug: bool) -> None:
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file)


def _local_store() -> LocalStore:
    return LocalStore(settings.local_store_path or DEFAULT_LOCAL_STORE)


async def _bootstrap(store: LocalStore, backend: str | None) -> BootstrapResult:
    result = await bootstrap_storage(backend, local_store=store, notifier=ConsoleNotifier())
    if result.migration and result.migration.migrated:
        console.print(f"[green]Legacy roster migrated[/green] (backup under {result.migration.backup_key})")
    return result


def _run(backend: str | None, debug: bool, action: Callable[[RosterService], Awaitable[T]]) -> T:
    """Bootstrap storage, run one service action, close the adapter."""
    _setup_logging(debug)

    async def runner() -> T:
        result = await _bootstrap(_local_store(), backend)
        try:
            return await action(RosterService(result.adapter, ConsoleNotifier()))
        finally:
            await result.adapter.close()

    try:
        return asyncio.run(runner())
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=debug)
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        raise typer.Exit(1) from e


def _print_week(record: dict[str, Any], week_number: int, read_only: bool, position: str = "all", owned_only: bool = False) -> None:
    players = filter_players(record.get("players") or [], position, owned_only)
    title = f"Week {week_number}" + (" (read-only)" if read_only else "")
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Pos")
    table.add_column("Team")
    table.add_column("Price", justify="right")
    table.add_column("Have")
    table.add_column("Role")
    table.add_column("Notes")

    for player in players:
        role = ""
        if player.get("id") == record.get("captain"):
            role = "C"
        elif player.get("id") == record.get("viceCaptain"):
            role = "VC"
        table.add_row(
            str(player.get("id")),
            str(player.get("name", "")),
            str(player.get("position", "")),
            str(player.get("team", "")),
            f"{player.get('price') or 0:.1f}",
            "yes" if player.get("have") is True else "",
            role,
            str(player.get("notes") or ""),
        )
    console.print(table)
    console.print(
        f"Squad: {record['teamStats']['playerCount']} players, "
        f"total cost {calculate_total_cost(record.get('players') or []):.1f}"
    )


def _report(result: CommandResult, done: str) -> None:
    if result.applied:
        console.print(f"[green]{done}[/green]")
    else:
        raise typer.Exit(1)


BackendOption = typer.Option(None, "--backend", "-b", help="Storage backend (keyvalue, docstore, remote)")
DebugOption = typer.Option(False, "--debug", help="Enable debug logging")


@app.command()
def show(
    position: str = typer.Option("all", "--position", help="Filter by position"),
    owned: bool = typer.Option(False, "--owned", help="Only players in the squad"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Show the current week's players."""
    document = _run(backend, debug, lambda service: service.load())
    current = document["currentWeek"]
    _print_week(document["weeks"][str(current)], current, False, position, owned)


@app.command()
def add_player(
    name: str = typer.Argument(..., help="Player name"),
    position: str = typer.Option(..., "--position", help="goalkeeper, defence, midfield or forward"),
    price: float = typer.Option(..., "--price", help="Price in millions"),
    team: str = typer.Option("", "--team", help="Club short code"),
    have: bool = typer.Option(False, "--have", help="Add straight into the squad"),
    status: str | None = typer.Option(None, "--status", help="green, yellow or red"),
    notes: str = typer.Option("", "--notes", help="Scouting notes"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Add a player to the current week."""
    data = {"name": name, "position": position, "price": price, "team": team, "have": have, "status": status, "notes": notes}
    result = _run(backend, debug, lambda service: service.add_player(data))
    _report(result, f"Added {name}")


@app.command()
def update_player(
    player_id: str = typer.Argument(..., help="Player ID"),
    name: str | None = typer.Option(None, "--name"),
    position: str | None = typer.Option(None, "--position"),
    price: float | None = typer.Option(None, "--price"),
    team: str | None = typer.Option(None, "--team"),
    status: str | None = typer.Option(None, "--status"),
    notes: str | None = typer.Option(None, "--notes"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Update fields of a player in the current week."""
    fields = {"name": name, "position": position, "price": price, "team": team, "status": status, "notes": notes}
    changes = {key: value for key, value in fields.items() if value is not None}
    if not changes:
        console.print("[yellow]Nothing to update[/yellow]")
        raise typer.Exit(1)
    result = _run(backend, debug, lambda service: service.update_player(player_id, changes))
    _report(result, f"Updated {player_id}")


@app.command()
def delete_player(
    player_id: str = typer.Argument(..., help="Player ID"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Delete a player from the current week."""
    result = _run(backend, debug, lambda service: service.delete_player(player_id))
    _report(result, f"Deleted {player_id}")


@app.command()
def toggle(
    player_id: str = typer.Argument(..., help="Player ID"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Add a player to, or remove them from, the squad."""
    result = _run(backend, debug, lambda service: service.toggle_have(player_id))
    _report(result, f"Toggled squad membership of {player_id}")


@app.command()
def captain(
    player_id: str = typer.Argument(..., help="Player ID"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Set (or clear) the captain."""
    result = _run(backend, debug, lambda service: service.set_captain(player_id))
    _report(result, "Captain updated")


@app.command()
def vice_captain(
    player_id: str = typer.Argument(..., help="Player ID"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Set (or clear) the vice-captain."""
    result = _run(backend, debug, lambda service: service.set_vice_captain(player_id))
    _report(result, "Vice-captain updated")


@app.command()
def new_week(backend: str | None = BackendOption, debug: bool = DebugOption) -> None:
    """Freeze the current week and start the next one."""
    document = _run(backend, debug, lambda service: service.create_new_week())
    console.print(f"[green]Now editing week {document['currentWeek']}[/green]")


@app.command()
def week(
    week_number: int = typer.Argument(..., help="Week to view"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """View any week without changing the current week."""
    view: WeekView | None = _run(backend, debug, lambda service: service.view_week(week_number))
    if view is None:
        console.print(f"[red]Week {week_number} does not exist[/red]")
        raise typer.Exit(1)
    _print_week(view.record, view.week_number, view.read_only)


@app.command()
def export(
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o", help="Directory to write the export to"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Export all data to fpl-data-week-N.json."""
    filename, content = _run(backend, debug, lambda service: service.export())
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / filename
    target.write_text(content, encoding="utf-8")
    console.print(f"[green]Exported to {target}[/green]")


@app.command(name="import")
def import_(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export to import"),
    backend: str | None = BackendOption,
    debug: bool = DebugOption,
) -> None:
    """Import an export file as a week and make it current."""
    text = path.read_text(encoding="utf-8")
    _, week_number = _run(backend, debug, lambda service: service.import_week(text))
    console.print(f"[green]Imported week {week_number}[/green]")


@app.command()
def backend(
    kind: str | None = typer.Argument(None, help="keyvalue, docstore or remote; omit to show the current choice"),
    debug: bool = DebugOption,
) -> None:
    """Show or set the preferred storage backend."""
    _setup_logging(debug)
    store = _local_store()
    if kind is None:
        current = store.get(BACKEND_PREFERENCE_KEY) or settings.storage_backend
        console.print(f"Preferred backend: [bold]{current}[/bold]")
        return
    try:
        chosen = select_backend(kind, store)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}. Choose one of: {', '.join(k.value for k in BackendKind)}")
        raise typer.Exit(1) from e
    console.print(f"[green]Backend set to {chosen.value}[/green]")


@app.command()
def diagnostics(backend: str | None = BackendOption, debug: bool = DebugOption) -> None:
    """Bootstrap storage and print the diagnostics it recorded."""
    _run(backend, debug, lambda service: service.load())
    events = [event.as_dict() for event in get_events()]
    console.print(Panel(JSON(json.dumps(events)), title="Storage diagnostics", border_style="cyan"))


@app.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the storage server used by the remote backend."""
    setup_logger(level=settings.log_level, log_file=settings.log_file)
    logger.info(f"Starting storage server on {host}:{port} (reload={reload})")
    uvicorn.run("roster.main:create_app", host=host, port=port, reload=reload, factory=True)


if __name__ == "__main__":
    app()
