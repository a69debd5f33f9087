"""CLI interface for mochi-sync."""

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from mochi_sync import __version__
from mochi_sync.config import Settings, get_settings
from mochi_sync.database.repository import StatePersistenceFailure, StateStore
from mochi_sync.utils.logging import configure_logging

app = typer.Typer(
    name="mochi-sync",
    help="Sync flashcards written in Markdown documents to Mochi.",
    no_args_is_help=True,
)
console = Console()


def load_settings() -> Settings:
    """Load settings and configure logging, exiting on invalid configuration."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print("Make sure you have a .env file with required settings.")
        raise typer.Exit(1)

    configure_logging(settings.log_level)
    return settings


def get_store(settings: Settings) -> StateStore:
    """Get state store instance, exiting if the database cannot be opened."""
    try:
        settings.database_path.parent.mkdir(parents=True, exist_ok=True)
        return StateStore(settings.database_url)
    except OSError as e:
        console.print(f"[red]Cannot create data directory: {e}[/red]")
        raise typer.Exit(1)
    except StatePersistenceFailure as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def get_client(settings: Settings):
    """Get Mochi client configured from settings."""
    from mochi_sync.services.mochi_client import MochiClient

    return MochiClient(
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.request_timeout,
        max_attempts=settings.max_attempts,
    )


@app.command()
def sync(
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Preview changes without modifying anything"
    ),
    refresh_decks: bool = typer.Option(
        False, "--refresh-decks", help="Reload deck names from Mochi before syncing"
    ),
):
    """
    Sync every card block in the vault to Mochi.

    1. Scans Markdown documents for ```mochi blocks
    2. Inserts an %% id:... %% line into blocks that lack one
    3. Creates new cards and updates changed ones in Mochi
    4. Saves the sync state
    """
    settings = load_settings()

    missing = settings.missing_sync_settings()
    if missing and not dry_run:
        console.print(
            f"[red]Missing settings: {', '.join(missing)}. "
            "Set MOCHI_SYNC_API_KEY and MOCHI_SYNC_DEFAULT_DECK_ID.[/red]"
        )
        raise typer.Exit(1)

    if dry_run:
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]\n")

    console.print("[bold blue]Starting mochi sync...[/bold blue]")
    console.print(f"  Vault: {settings.vault_path}")
    console.print(f"  Default deck: {settings.default_deck_id or '(not set)'}")
    console.print()

    from mochi_sync.services.reconciler import Reconciler
    from mochi_sync.services.sync_runner import SyncInProgressError, SyncRunner
    from mochi_sync.services.vault import Vault

    reconciler = Reconciler(
        client=get_client(settings),
        default_deck_id=settings.default_deck_id,
        delay=settings.request_delay,
    )
    runner = SyncRunner(
        vault=Vault(settings.vault_path),
        store=get_store(settings),
        reconciler=reconciler,
    )

    try:
        with console.status("[yellow]Syncing cards...[/yellow]"):
            summary = runner.run(dry_run=dry_run, refresh_decks=refresh_decks)
    except SyncInProgressError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except StatePersistenceFailure as e:
        console.print(f"[red]Saving sync state failed: {e}[/red]")
        raise typer.Exit(1)

    if summary.total_found == 0:
        console.print(
            "[yellow]No cards found. Use this format:[/yellow]\n"
            "```mochi\nQuestion\n---\nAnswer\n```\n"
            "or\n"
            "```mochi\nThis is {{1::cloze}} text\n```"
        )
        raise typer.Exit(0)

    if dry_run:
        console.print("[bold]Would sync:[/bold]")
        console.print(f"  Create: [green]{summary.created}[/green]")
        console.print(f"  Update: [green]{summary.updated}[/green]")
        console.print(f"  Unchanged: {summary.unchanged}")
        console.print(f"  Documents needing IDs: {summary.documents_updated}")
        raise typer.Exit(0)

    for failure in summary.failures:
        console.print(
            f"  [red]✗[/red] {failure.local_id}: {failure.operation} failed "
            f"({failure.error_kind}) {failure.message}"
        )

    console.print("\n[bold]Sync summary:[/bold]")
    console.print(f"  Found: {summary.total_found} card(s)")
    console.print(f"  Created: [green]{summary.created}[/green]")
    console.print(f"  Updated: [green]{summary.updated}[/green]")
    if summary.failed:
        console.print(f"  Failed: [red]{summary.failed}[/red]")
    if summary.documents_updated:
        console.print(f"  Documents given new IDs: {summary.documents_updated}")

    console.print(f"\n[bold blue]{summary.message()}[/bold blue]")


@app.command()
def decks():
    """List Mochi decks and remember their names for Deck: overrides."""
    settings = load_settings()

    if not settings.api_key:
        console.print("[red]Missing setting: api_key.[/red]")
        raise typer.Exit(1)

    from mochi_sync.services.mochi_client import MochiAPIError

    try:
        remote_decks = get_client(settings).list_decks()
    except MochiAPIError as e:
        console.print(f"[red]Error listing decks: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Mochi Decks")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="green")
    for deck in remote_decks:
        marker = " (default)" if deck.id == settings.default_deck_id else ""
        table.add_row(deck.name + marker, deck.id)
    console.print(table)

    store = get_store(settings)
    try:
        state = store.load()
        state.decks = {deck.name: deck.id for deck in remote_decks if deck.name}
        store.persist(state)
    except StatePersistenceFailure as e:
        console.print(f"[red]Saving deck names failed: {e}[/red]")
        raise typer.Exit(1)


@app.command("new-card")
def new_card(
    document: Optional[Path] = typer.Argument(
        None, help="Markdown file to append the card to (prints it if omitted)"
    ),
):
    """Create an empty card block with a fresh ID."""
    from mochi_sync.services.extractor import CardExtractor

    template = CardExtractor().new_card_template()

    if document is None:
        console.print(template, markup=False, highlight=False)
        return

    existing = document.read_text(encoding="utf-8") if document.exists() else ""
    separator = "" if not existing or existing.endswith("\n") else "\n"
    document.write_text(existing + separator + "\n" + template, encoding="utf-8")
    console.print(f"[green]✓[/green] Added card to {document}")


@app.command()
def status():
    """Show sync state statistics."""
    settings = load_settings()

    if not settings.database_path.exists():
        console.print(
            "[yellow]Database not yet initialized. Run 'mochi-sync sync' first.[/yellow]"
        )
        raise typer.Exit(0)

    stats = get_store(settings).get_stats()

    last_sync = "never"
    if stats["last_sync"]:
        last_sync = datetime.fromtimestamp(stats["last_sync"] / 1000).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

    table = Table(title="mochi-sync Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Tracked Cards", str(stats["tracked_cards"]))
    table.add_row("Known Decks", str(stats["known_decks"]))
    table.add_row("Last Card Sync", last_sync)

    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    settings = load_settings()

    table = Table(title="mochi-sync Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    # Mask sensitive values
    api_key_masked = (
        settings.api_key[:4] + "..." if len(settings.api_key) > 8 else "***"
    ) if settings.api_key else "(not set)"

    table.add_row("API Key", api_key_masked)
    table.add_row("Default Deck ID", settings.default_deck_id or "(not set)")
    table.add_row("API URL", settings.base_url)
    table.add_row("Vault Path", str(settings.vault_path))
    table.add_row("Database Path", str(settings.database_path))
    table.add_row("Request Delay", f"{settings.request_delay}s")
    table.add_row("Max Attempts", str(settings.max_attempts))
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"mochi-sync v{__version__}")


@app.callback()
def main():
    """
    mochi-sync - Markdown to Mochi flashcard sync.

    Finds ```mochi card blocks in your notes, gives each a stable ID,
    and creates or updates the matching cards in Mochi.
    """
    pass


if __name__ == "__main__":
    app()
