"""Main CLI entry point for TokenVault."""

import sys
from pathlib import Path

import click

from tokenvault.cli.common import error
from tokenvault.cli.config import config
from tokenvault.cli.postman import setup_postman
from tokenvault.cli.projects import projects
from tokenvault.cli.serve import fetch, ping, serve, status, store
from tokenvault.cli.tokens import tokens
from tokenvault.exceptions import TokenVaultError


@click.group()
@click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="TOKENVAULT_HOME",
    help="TokenVault home directory (default: ~/.tokenvault)",
)
@click.option("--debug/--no-debug", default=False, help="Show debug information")
@click.pass_context
def cli(ctx: click.Context, home: Path | None, debug: bool) -> None:
    """TokenVault - a local token broker for API development.

    Backends push their login tokens to the broker; API clients such as
    Postman fetch them by project name.
    """
    ctx.ensure_object(dict)
    ctx.obj["home"] = home
    ctx.obj["debug"] = debug


@cli.command()
@click.pass_context
def help(ctx: click.Context) -> None:
    """Show this help message."""
    click.echo(ctx.parent.get_help())


# Register commands
cli.add_command(serve)
cli.add_command(ping)
cli.add_command(status)
cli.add_command(store)
cli.add_command(fetch)
cli.add_command(projects)
cli.add_command(tokens)
cli.add_command(config)
cli.add_command(setup_postman)


def main() -> None:
    """Main entry point with error handling."""
    try:
        cli()
    except TokenVaultError as e:
        error(str(e))
        sys.exit(1)
    except Exception as e:
        if "--debug" in sys.argv:
            raise
        error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
