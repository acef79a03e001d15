# ABOUTME: The `bookhunt sites` command group for viewing and editing site lists.
# ABOUTME: Enables, disables and reorders providers per list type; changes are saved immediately.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bookhunt.cli.options import list_type_option, prefs_option
from bookhunt.cli.providers import load_registry
from bookhunt.prefs.connection import DEFAULT_PREFS_PATH, open_preferences
from bookhunt.prefs.store import SqliteSitePreferences
from bookhunt.search.engine import SearchEngine
from bookhunt.search.registry import ProviderRegistry
from bookhunt.search.sites import ListType, SiteRegistry

console = Console()


def _create_registry() -> ProviderRegistry:
    """Create the registry of installed search providers."""
    return load_registry()


def _resolve(registry: ProviderRegistry, key: str) -> SearchEngine:
    engine = registry.find(key)
    if engine is None:
        console.print(f"[red]Unknown site:[/red] {key}")
        raise SystemExit(1)
    return engine


@click.group("sites")
def sites() -> None:
    """Show and change which sites are searched, and in what order."""


@sites.command("list")
@list_type_option
@prefs_option
def list_sites(list_type: str, prefs_path: Path | None) -> None:
    """List the sites of one list in search order."""
    registry = _create_registry()
    conn = open_preferences(prefs_path or DEFAULT_PREFS_PATH)
    try:
        site_registry = SiteRegistry(registry, SqliteSitePreferences(conn))
        site_list = site_registry.sites(ListType(list_type))
    finally:
        conn.close()

    if not site_list:
        console.print(f"[yellow]No sites support the {list_type} list.[/yellow]")
        return

    table = Table()
    table.add_column("#", style="dim", width=3)
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Enabled", width=7)

    for position, site in enumerate(site_list, start=1):
        engine = registry.get(site.provider_id)
        table.add_row(
            str(position),
            engine.descriptor.key,
            engine.name,
            "[green]yes[/green]" if site.enabled else "[dim]no[/dim]",
        )
    console.print(table)


def _set_enabled(list_type: str, keys: tuple[str, ...], prefs_path: Path | None, enabled: bool):
    registry = _create_registry()
    engines = [_resolve(registry, key) for key in keys]
    conn = open_preferences(prefs_path or DEFAULT_PREFS_PATH)
    try:
        site_registry = SiteRegistry(registry, SqliteSitePreferences(conn))
        for engine in engines:
            try:
                site_registry.set_enabled(ListType(list_type), engine.id, enabled)
            except KeyError as exc:
                console.print(f"[red]{engine.name} is not a {list_type} site.[/red]")
                raise SystemExit(1) from exc
            state = "enabled" if enabled else "disabled"
            console.print(f"{engine.name} {state} for {list_type}.")
    finally:
        conn.close()


@sites.command("enable")
@click.argument("keys", nargs=-1, required=True)
@list_type_option
@prefs_option
def enable(keys: tuple[str, ...], list_type: str, prefs_path: Path | None) -> None:
    """Enable one or more sites."""
    _set_enabled(list_type, keys, prefs_path, True)


@sites.command("disable")
@click.argument("keys", nargs=-1, required=True)
@list_type_option
@prefs_option
def disable(keys: tuple[str, ...], list_type: str, prefs_path: Path | None) -> None:
    """Disable one or more sites."""
    _set_enabled(list_type, keys, prefs_path, False)


@sites.command("order")
@click.argument("keys", nargs=-1, required=True)
@list_type_option
@prefs_option
def order(keys: tuple[str, ...], list_type: str, prefs_path: Path | None) -> None:
    """Move the named sites to the front, in the order given.

    Sites not named keep their relative order after them.
    """
    registry = _create_registry()
    engines = [_resolve(registry, key) for key in keys]
    lt = ListType(list_type)
    conn = open_preferences(prefs_path or DEFAULT_PREFS_PATH)
    try:
        site_registry = SiteRegistry(registry, SqliteSitePreferences(conn))
        current = site_registry.sites(lt)
        known = {site.provider_id for site in current}
        missing = [engine.name for engine in engines if engine.id not in known]
        if missing:
            console.print(f"[red]Not {list_type} sites:[/red] {', '.join(missing)}")
            raise SystemExit(1)

        front = SiteRegistry.reorder(current, ",".join(str(engine.id) for engine in engines))
        rest = [site for site in current if site not in front]
        site_registry.set_sites(lt, front + rest)
    finally:
        conn.close()
    console.print(f"New {list_type} order: " + ", ".join(engine.name for engine in engines) + " ...")


@sites.command("reset")
@list_type_option
@prefs_option
def reset(list_type: str, prefs_path: Path | None) -> None:
    """Restore the default order and enablement of a list."""
    registry = _create_registry()
    conn = open_preferences(prefs_path or DEFAULT_PREFS_PATH)
    try:
        SiteRegistry(registry, SqliteSitePreferences(conn)).reset(ListType(list_type))
    finally:
        conn.close()
    console.print(f"{list_type} sites reset to defaults.")
