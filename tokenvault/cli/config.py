"""Config CLI commands for TokenVault."""

from typing import Any

import click
from rich.tree import Tree

from tokenvault.cli.common import console, get_settings_service


def _parse_value(value: str) -> Any:
    """Parse a string value into appropriate Python type.

    The settings model validates the result, so this only has to make a
    reasonable first guess.

    Args:
        value: String value from command line.

    Returns:
        Parsed value (bool, int, or string).
    """
    # Boolean
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Integer
    try:
        return int(value)
    except ValueError:
        pass

    # String
    return value


def _format_value(value: Any) -> str:
    """Format a value for display.

    Args:
        value: The value to format.

    Returns:
        Formatted string representation.
    """
    if value is None:
        return "[dim]not set[/dim]"
    if isinstance(value, bool):
        return "[green]true[/green]" if value else "[red]false[/red]"
    return str(value)


@click.group()
def config() -> None:
    """View and modify settings."""
    pass


@config.command(name="show")
@click.argument("key", required=False)
@click.pass_context
def config_show(ctx: click.Context, key: str | None) -> None:
    """Show settings.

    If KEY is provided, show only that value.

    Examples:
        tokenvault config show
        tokenvault config show serverPort
    """
    settings_service = get_settings_service(ctx)
    values = settings_service.load().model_dump(by_alias=True, mode="json")

    if key:
        if key not in values:
            console.print(f"[yellow]Unknown setting '{key}'[/yellow]")
            return
        console.print(f"{key}: {_format_value(values[key])}")
        return

    tree = Tree(f"[bold]Settings[/bold] [dim]({settings_service.config_file})[/dim]")
    for name, value in values.items():
        tree.add(f"[cyan]{name}[/cyan]: {_format_value(value)}")
    console.print(tree)


@config.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a setting.

    Examples:
        tokenvault config set serverPort 9998
        tokenvault config set autoStartServer false
    """
    settings_service = get_settings_service(ctx)
    settings_service.set(key, _parse_value(value))
    console.print(f"[green]Set {key} = {_format_value(_parse_value(value))}[/green]")
