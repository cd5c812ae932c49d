"""Typer-based CLI for Moments."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .config import MomentsConfig
from .ledger import LedgerWriter, read_ledger_tail
from .markdown import extract_tags
from .models.entry import MomentEntry
from .paths import VaultPaths
from .state import MomentsStateManager
from .storage import ensure_moments_file, is_moments_file
from .timefmt import format_timestamp, relative_time

app = typer.Typer(
    name="moments",
    help="Moments - quick note capture into a single Markdown file",
    add_completion=False,
)

console = Console()

VAULT_HELP = "Directory holding the Moments file (default: .moments/config.toml, MOMENTS_VAULT env, or cwd)"


@app.callback()
def main_callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Moments - quick note capture into a single Markdown file."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(vault_path: Optional[str]) -> MomentsConfig:
    try:
        return MomentsConfig.from_env(cli_vault_path=vault_path)
    except (FileNotFoundError, ValueError) as e:
        # pydantic messages contain [type=...] which rich would read as markup
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _open_manager(vault_path: Optional[str]) -> tuple[MomentsConfig, VaultPaths, MomentsStateManager]:
    """Resolve config, make sure the Moments file exists and load it."""
    config = _load_config(vault_path)
    paths = VaultPaths.from_config(config)

    result = ensure_moments_file(paths.moments_file, config.auto_create_file)
    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        console.print("[yellow]Run 'moments init' first[/yellow]")
        raise typer.Exit(code=1)

    # The ledger and undo record live in .moments/, created by init
    ledger_writer = LedgerWriter.for_vault(paths) if paths.system.exists() else None
    undo_path = paths.undo_file if paths.system.exists() else None

    manager = MomentsStateManager(paths.moments_file, config, ledger_writer=ledger_writer, undo_path=undo_path)
    if not manager.initialize():
        console.print(f"[red]Error: Could not read {paths.moments_file}[/red]")
        raise typer.Exit(code=1)
    return config, paths, manager


def _normalize_id(entry_id: str) -> str:
    entry_id = entry_id.strip().lstrip("^")
    return entry_id if entry_id.startswith("m-") else f"m-{entry_id}"


def _first_line(entry: MomentEntry, width: int = 60) -> str:
    line = entry.raw.split("\n", 1)[0]
    if len(line) > width or "\n" in entry.raw:
        line = line[: width - 3] + "..."
    return line


@app.command()
def init(
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Initialize a Moments vault: system folder, config, ledger and Moments file.

    This command is idempotent - it will not overwrite existing data.
    """
    if vault_path:
        Path(vault_path).expanduser().mkdir(parents=True, exist_ok=True)

    config = _load_config(vault_path)
    paths = VaultPaths.from_config(config)

    created = []
    for directory in paths.get_all_directories():
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            created.append(directory)
    if created:
        console.print(f"[green]+[/green] Created {len(created)} directories")

    if not paths.config_file.exists():
        paths.config_file.write_text(config.to_toml_str(), encoding="utf-8")
        console.print(f"[green]+[/green] Created config: {paths.config_file}")
    else:
        console.print(f"[dim]Config already exists: {paths.config_file}[/dim]")

    if not paths.ledger_file.exists():
        paths.ledger_file.touch()
        console.print(f"[green]+[/green] Created ledger: {paths.ledger_file}")
    else:
        console.print(f"[dim]Ledger already exists: {paths.ledger_file}[/dim]")

    existed = paths.moments_file.exists()
    result = ensure_moments_file(paths.moments_file, auto_create=True)
    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        raise typer.Exit(code=1)

    if existed:
        console.print(f"[dim]Moments file already exists: {paths.moments_file}[/dim]")
        if not is_moments_file(paths.moments_file):
            console.print("[yellow]Warning: file has no 'moments-plugin: true' frontmatter[/yellow]")
    else:
        LedgerWriter.for_vault(paths).append_event(event_type="FILE_CREATED")
        console.print(f"[green]+[/green] Created Moments file: {paths.moments_file}")

    console.print()
    console.print("[bold green]Moments initialization complete![/bold green]")


@app.command()
def add(
    text: str = typer.Argument(..., help="Content of the new moment"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Capture a new moment."""
    config, paths, manager = _open_manager(vault_path)

    entry_id = manager.add_entry(text)
    if entry_id is None:
        console.print("[yellow]Nothing captured (empty content or a '***' line)[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]Captured:[/green] ^{entry_id}")


@app.command("list")
def list_entries(
    search: str = typer.Option(None, "--search", "-s", help="Case-insensitive text filter"),
    tag: str = typer.Option(None, "--tag", "-t", help="Only entries carrying this #tag"),
    archived: bool = typer.Option(False, "--archived", "-a", help="Show archived entries instead"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """List moments in file order."""
    config, paths, manager = _open_manager(vault_path)

    if archived:
        entries = manager.get_archived_entries()
        if search:
            entries = [e for e in entries if search.lower() in e.raw_with_prefix.lower()]
    else:
        if search:
            manager.set_search_query(search)
        entries = manager.get_entries()

    if tag:
        wanted = tag if tag.startswith("#") else f"#{tag}"
        entries = [e for e in entries if wanted in extract_tags(e.raw).tags]

    if not entries:
        console.print("[dim]No moments found[/dim]")
        return

    table = Table(title=f"{'Archived' if archived else 'Moments'} ({len(entries)})")
    table.add_column("ID", style="yellow", no_wrap=True)
    table.add_column("Created", style="cyan", no_wrap=True)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Content")
    table.add_column("Tags", style="magenta")

    for entry in entries:
        table.add_row(
            entry.id,
            format_timestamp(entry.created_at, config.timestamp_format),
            relative_time(entry.created_at),
            Text(_first_line(entry)),
            " ".join(extract_tags(entry.raw).tags),
        )

    console.print(table)


@app.command()
def show(
    entry_id: str = typer.Argument(..., help="Block id, with or without the m- prefix"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Print the full content of one moment."""
    config, paths, manager = _open_manager(vault_path)
    entry_id = _normalize_id(entry_id)

    parsed = manager.parsed
    entry = parsed.get_entry(entry_id) if parsed else None
    if entry is None:
        console.print(f"[red]Error: No moment with id {entry_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[cyan]{format_timestamp(entry.created_at, config.timestamp_format)}[/cyan]  [dim]^{entry.id}[/dim]")
    console.print(entry.raw, markup=False, highlight=False)


@app.command()
def edit(
    entry_id: str = typer.Argument(..., help="Block id, with or without the m- prefix"),
    text: str = typer.Argument(..., help="New content"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Replace a moment's content, keeping its id and timestamp."""
    config, paths, manager = _open_manager(vault_path)
    entry_id = _normalize_id(entry_id)

    if not manager.update_entry(entry_id, text):
        console.print(f"[red]Error: Could not update {entry_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Updated:[/green] ^{entry_id}")


@app.command()
def delete(
    entry_id: str = typer.Argument(..., help="Block id, with or without the m- prefix"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Delete a moment (or archive it when soft delete is configured)."""
    config, paths, manager = _open_manager(vault_path)
    entry_id = _normalize_id(entry_id)

    if not manager.delete_entry(entry_id):
        console.print(f"[red]Error: No active moment with id {entry_id}[/red]")
        raise typer.Exit(code=1)

    verb = "Archived" if config.soft_delete_to_archive else "Deleted"
    console.print(f"[green]{verb}:[/green] ^{entry_id}")
    if manager.undo_path is not None:
        console.print("[dim]Run 'moments undo' within 5 minutes to restore it[/dim]")


@app.command()
def archive(
    entry_id: str = typer.Argument(..., help="Block id, with or without the m- prefix"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Move a moment to the archive section."""
    config, paths, manager = _open_manager(vault_path)
    entry_id = _normalize_id(entry_id)

    if not manager.delete_entry(entry_id, soft_delete=True):
        console.print(f"[red]Error: No active moment with id {entry_id}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Archived:[/green] ^{entry_id}")


@app.command()
def undo(
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Restore the most recently deleted moment (within 5 minutes)."""
    config, paths, manager = _open_manager(vault_path)

    if not manager.undo_last_delete():
        console.print("[yellow]Nothing to undo[/yellow]")
        raise typer.Exit(code=1)

    console.print("[green]Restored last deleted moment[/green]")


@app.command()
def check(
    fix: bool = typer.Option(False, "--fix", help="Write block ids into entries that lack one"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Report parse diagnostics for the Moments file."""
    config, paths, manager = _open_manager(vault_path)

    if not is_moments_file(paths.moments_file):
        console.print("[yellow]Warning: file has no 'moments-plugin: true' frontmatter[/yellow]")

    errors = manager.get_errors()
    console.print(
        f"[cyan]{len(manager.get_all_entries())}[/cyan] active, "
        f"[cyan]{len(manager.get_archived_entries())}[/cyan] archived, "
        f"[cyan]{len(errors)}[/cyan] issue(s)"
    )
    for issue in errors:
        console.print(f"  [yellow]-[/yellow] {issue.message}  [dim]{issue.context or ''}[/dim]")

    if fix and errors:
        repaired = manager.repair_missing_ids()
        console.print(f"[green]Repaired {repaired} entr{'y' if repaired == 1 else 'ies'}[/green]")


ledger_app = typer.Typer(help="Ledger commands")
app.add_typer(ledger_app, name="ledger")


@ledger_app.command("tail")
def ledger_tail(
    n: int = typer.Option(20, "--n", help="Number of recent events to display"),
    entry: str = typer.Option(None, "--entry", "-e", help="Only events for this block id"),
    vault_path: str = typer.Option(None, "--vault", "-v", help=VAULT_HELP),
):
    """Display the last N events from the ledger."""
    config = _load_config(vault_path)
    paths = VaultPaths.from_config(config)

    if not paths.system.exists():
        console.print(f"[red]Error: Vault not initialized at {config.vault_path}[/red]")
        console.print("[yellow]Run 'moments init' first[/yellow]")
        raise typer.Exit(code=1)

    entry_id = _normalize_id(entry) if entry else None
    events = read_ledger_tail(paths.ledger_file, n=n, entry_id=entry_id)
    if not events:
        console.print("[dim]No events in ledger[/dim]")
        return

    table = Table(title=f"Last {len(events)} Ledger Event(s)")
    table.add_column("Timestamp (UTC)", style="cyan", no_wrap=True)
    table.add_column("Event Type", style="magenta")
    table.add_column("Entry", style="yellow")
    table.add_column("Payload", style="dim")

    for event in events:
        payload_str = str(event.payload)
        if len(payload_str) > 60:
            payload_str = payload_str[:57] + "..."
        table.add_row(
            event.ts.strftime("%Y-%m-%d %H:%M:%S"),
            event.event_type,
            event.entry_id or "-",
            payload_str,
        )

    console.print(table)


@app.command()
def version():
    """Show Moments version."""
    from . import __version__
    console.print(f"Moments v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
