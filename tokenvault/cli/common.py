"""Shared helpers for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager

import click
from rich.console import Console

from tokenvault.services.database import Database
from tokenvault.services.settings import SettingsService

console = Console()


def error(msg: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error:[/red] {msg}")


def warning(msg: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {msg}")


def info(msg: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{msg}[/dim]")


def success(msg: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {msg}")


def get_settings_service(ctx: click.Context) -> SettingsService:
    """Build the settings service for the --home passed to the CLI."""
    home = ctx.obj.get("home") if ctx.obj else None
    return SettingsService(home)


@contextmanager
def open_database(ctx: click.Context) -> Iterator[Database]:
    """Open the token store configured for this CLI invocation.

    Yields:
        A connected, initialized database, closed on exit.
    """
    settings_service = get_settings_service(ctx)
    settings = settings_service.load()
    db = Database.open(settings_service.database_path(settings))
    try:
        yield db
    finally:
        db.close()
