# ABOUTME: The `bookhunt search` command: one metadata search across every enabled provider.
# ABOUTME: Shows live per-provider progress, then the merged record and any provider errors.

import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from bookhunt.cli.options import prefs_option
from bookhunt.cli.providers import load_registry
from bookhunt.prefs.connection import DEFAULT_PREFS_PATH, open_preferences
from bookhunt.prefs.store import SqliteSitePreferences
from bookhunt.search.coordinator import SearchCoordinator, SearchSettings
from bookhunt.search.errors import NetworkUnavailableError
from bookhunt.search.http import check_network
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import SiteRegistry
from bookhunt.search.types import Author, BookField, Publisher, SearchProgress, Series, TocEntry

logger = logging.getLogger(__name__)

console = Console()

_FIELD_LABELS = {
    BookField.ISBN: "ISBN",
    BookField.TITLE: "Title",
    BookField.AUTHORS: "Authors",
    BookField.SERIES: "Series",
    BookField.PUBLISHERS: "Publishers",
    BookField.PUBLICATION_DATE: "Published",
    BookField.FIRST_PUBLICATION_DATE: "First published",
    BookField.FORMAT: "Format",
    BookField.COLOR: "Color",
    BookField.PAGES: "Pages",
    BookField.LANGUAGE: "Language",
    BookField.GENRE: "Genre",
    BookField.PRICE: "Price",
    BookField.DESCRIPTION: "Description",
    BookField.TOC: "Contents",
    BookField.COVER_FILE[0]: "Front cover",
    BookField.COVER_FILE[1]: "Back cover",
}


def _create_registry() -> ProviderRegistry:
    """Create the registry of installed search providers."""
    return load_registry()


def _network_available() -> bool:
    return check_network()


def _parse_external_ids(registry: ProviderRegistry, values: tuple[str, ...]) -> dict[int, str]:
    """Turn KEY=ID options into a provider id -> external id map."""
    external_ids: dict[int, str] = {}
    for value in values:
        key, sep, external_id = value.partition("=")
        if not sep or not external_id.strip():
            raise click.BadParameter(f"expected KEY=ID, got {value!r}", param_hint="--id")
        engine = registry.find(key.strip())
        if engine is None:
            raise click.BadParameter(f"unknown provider {key!r}", param_hint="--id")
        external_ids[engine.id] = external_id.strip()
    return external_ids


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return "\n".join(_format_entry(entry) for entry in value)
    return str(value)


def _format_entry(entry: Any) -> str:
    if isinstance(entry, Author):
        return f"{entry.name} ({entry.role})" if entry.role else entry.name
    if isinstance(entry, Series):
        return f"{entry.title} #{entry.number}" if entry.number else entry.title
    if isinstance(entry, Publisher):
        return entry.name
    if isinstance(entry, TocEntry):
        return f"{entry.title} / {entry.author}" if entry.author else entry.title
    return str(entry)


def _record_table(record: dict[str, Any]) -> Table:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold", width=16)
    table.add_column("Value")

    for key, label in _FIELD_LABELS.items():
        value = record.get(key)
        if value in (None, "", []):
            continue
        table.add_row(label, _format_value(value))
    for key in sorted(set(record) - set(_FIELD_LABELS)):
        if record[key] not in (None, "", []):
            table.add_row(key, _format_value(record[key]))
    return table


@click.command("search")
@click.option("-i", "--isbn", default="", help="ISBN or barcode to search for.")
@click.option("-a", "--author", default="", help="Author name.")
@click.option("-t", "--title", default="", help="Book title.")
@click.option("-p", "--publisher", default="", help="Publisher name.")
@click.option(
    "--id",
    "external_ids",
    multiple=True,
    metavar="KEY=ID",
    help="A provider's own id for the book, e.g. isfdb=12345. May be repeated.",
)
@click.option(
    "--strict/--loose",
    default=True,
    help="Accept only ISBN-10/13 (--strict) or any EAN-13/UPC-A barcode (--loose).",
)
@click.option("--covers", is_flag=True, default=False, help="Download front cover images.")
@click.option(
    "--network-check/--no-network-check",
    default=True,
    help="Check connectivity before searching (default: on).",
)
@prefs_option
def search(
    isbn: str,
    author: str,
    title: str,
    publisher: str,
    external_ids: tuple[str, ...],
    strict: bool,
    covers: bool,
    network_check: bool,
    prefs_path: Path | None,
) -> None:
    """Search every enabled site for a book and show the merged metadata."""
    registry = _create_registry()
    if not len(registry):
        console.print("[red]No search providers are installed.[/red]")
        raise SystemExit(1)

    ids = _parse_external_ids(registry, external_ids)
    if not (isbn.strip() or author.strip() or title.strip() or ids):
        console.print("[red]Give at least an ISBN, an author, a title or an --id.[/red]")
        raise SystemExit(1)

    conn = open_preferences(prefs_path or DEFAULT_PREFS_PATH)
    try:
        sites = SiteRegistry(registry, SqliteSitePreferences(conn))
        coordinator = SearchCoordinator(
            registry,
            sites,
            settings=SearchSettings(),
            network_check=_network_available if network_check else None,
        )
        coordinator.set_criteria(
            isbn=isbn,
            strict_isbn=strict,
            author=author,
            title=title,
            publisher=publisher,
            external_ids=ids,
            fetch_covers=(covers, False),
        )
        with coordinator:
            result = _run(coordinator)
    finally:
        conn.close()

    if result is None:
        console.print("[yellow]No enabled site can search with these criteria.[/yellow]")
        return

    if result.cancelled:
        console.print("[yellow]Search cancelled; showing partial results.[/yellow]")
    console.print(_record_table(result.record))
    if result.has_errors:
        console.print("\n[yellow]Some sites reported problems:[/yellow]")
        for line in result.error_summary.splitlines():
            console.print(f"  {line}")


def _run(coordinator: SearchCoordinator):
    """Run the session with a spinner; Ctrl-C cancels and keeps partial results."""
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Searching", total=None)

        def show(event: SearchProgress) -> None:
            progress.update(task_id, description=event.text or "Searching")

        coordinator.progress.connect(show)
        try:
            started = coordinator.search()
        except NetworkUnavailableError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise SystemExit(1) from exc
        if not started:
            return None

        try:
            return coordinator.wait()
        except KeyboardInterrupt:
            coordinator.cancel()
            return coordinator.wait()
