"""
CLI for the response cache store.

Commands:
    respcache stats - Show entry counts for a store
    respcache prune - Run capacity eviction, or delete expired entries
    respcache invalidate ORIGIN PATH - Delete every entry for a url
    respcache lookup ORIGIN PATH - Show the entry a request would get
    respcache config - Show current configuration
    respcache version - Print version
"""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from respcache import __version__
from respcache.config import Settings, clear_settings_cache, get_settings
from respcache.logging import log_context, setup_logging
from respcache.store import SqliteCacheStore
from respcache.types import CacheKey

app = typer.Typer(
    name="respcache",
    help="Inspect and maintain an HTTP response cache database",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

LocationOption = Annotated[
    Optional[str],
    typer.Option("--location", "-l", help="SQLite database path (defaults to CACHE_LOCATION)"),
]


def _load_settings() -> Settings:
    """Load settings, exiting with a message if they are invalid."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except Exception as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid: {e}")
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _open_store(settings: Settings, location: str | None, **overrides) -> SqliteCacheStore:
    if location is not None:
        overrides["location"] = location
    return SqliteCacheStore.from_settings(settings, **overrides)


def _parse_headers(raw: list[str]) -> dict[str, str | list[str]]:
    """Parse repeated name:value options; repeated names become lists."""
    headers: dict[str, str | list[str]] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep:
            raise typer.BadParameter(f"expected name:value, got {item!r}", param_hint="--header")
        name = name.strip().lower()
        value = value.strip()
        current = headers.get(name)
        if current is None:
            headers[name] = value
        elif isinstance(current, list):
            current.append(value)
        else:
            headers[name] = [current, value]
    return headers


@app.command()
def stats(location: LocationOption = None) -> None:
    """Show entry counts for a cache store."""
    settings = _load_settings()

    with _open_store(settings, location) as store:
        with log_context(store=store.location, operation="stats"):
            data = store.stats()

    table = Table(title="Cache Store", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    for key in ("location", "table", "journal_mode", "max_count", "max_entry_size", "total", "expired"):
        table.add_row(key, str(data[key]))
    for method, count in data["by_method"].items():
        table.add_row(f"method {method}", str(count))

    console.print(table)


@app.command()
def prune(
    location: LocationOption = None,
    max_count: Annotated[
        Optional[int],
        typer.Option("--max-count", "-m", min=0, help="Capacity bound (defaults to CACHE_MAX_COUNT)"),
    ] = None,
    expired: Annotated[
        bool,
        typer.Option("--expired", "-e", help="Delete every expired entry instead"),
    ] = False,
) -> None:
    """Run capacity eviction, or delete all expired entries with --expired."""
    settings = _load_settings()
    overrides = {"max_count": max_count} if max_count is not None else {}

    with _open_store(settings, location, **overrides) as store:
        with log_context(store=store.location, operation="prune"):
            removed = store.delete_expired() if expired else store.prune()
            remaining = store.size

    console.print(f"Removed [bold]{removed}[/bold] entries, {remaining} remaining")


@app.command()
def invalidate(
    origin: Annotated[str, typer.Argument(help="Origin, e.g. https://example.com")],
    path: Annotated[str, typer.Argument(help="Path as the interceptor stores it")],
    location: LocationOption = None,
) -> None:
    """Delete every entry for a url, across all methods and variants."""
    settings = _load_settings()

    with _open_store(settings, location) as store:
        with log_context(store=store.location, operation="invalidate"):
            removed = store.delete(CacheKey(origin=origin, method="GET", path=path))

    console.print(f"Removed [bold]{removed}[/bold] entries for {origin}/{path}")


@app.command()
def lookup(
    origin: Annotated[str, typer.Argument(help="Origin, e.g. https://example.com")],
    path: Annotated[str, typer.Argument(help="Path as the interceptor stores it")],
    method: Annotated[str, typer.Option("--method", "-X", help="HTTP method")] = "GET",
    header: Annotated[
        Optional[list[str]],
        typer.Option("--header", "-H", help="Request header as name:value (repeatable)"),
    ] = None,
    location: LocationOption = None,
) -> None:
    """Show the entry a request would be answered with."""
    settings = _load_settings()
    headers = _parse_headers(header or [])
    key = CacheKey(origin=origin, method=method.upper(), path=path, headers=headers or None)

    with _open_store(settings, location) as store:
        with log_context(store=store.location, operation="lookup"):
            value = store.get(key)

    if value is None:
        error_console.print(f"[yellow]Not found:[/yellow] {method.upper()} {origin}/{path}")
        raise typer.Exit(1)

    table = Table(title=f"{method.upper()} {origin}/{path}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("status", f"{value.status_code} {value.status_message}")
    table.add_row("etag", value.etag or "[dim]none[/dim]")
    table.add_row("cached_at", str(value.cached_at))
    table.add_row("stale_at", str(value.stale_at))
    table.add_row("delete_at", str(value.delete_at))
    table.add_row("vary", str(value.vary) if value.vary else "[dim]none[/dim]")
    table.add_row("body", f"{len(value.body or b'')} bytes")
    console.print(table)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"respcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
