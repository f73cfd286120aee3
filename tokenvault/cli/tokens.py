"""Token inspection commands.

Token values are masked unless --show is given.
"""

import click
from rich.table import Table

from tokenvault.cli.common import console, info, open_database, success
from tokenvault.services.token import TokenService


@click.group()
def tokens() -> None:
    """Inspect stored tokens."""
    pass


@tokens.command(name="list")
@click.option("--show", is_flag=True, help="Show full token values")
@click.pass_context
def tokens_list(ctx: click.Context, show: bool) -> None:
    """List the current token of every project."""
    with open_database(ctx) as db:
        token_list = TokenService(db).list_tokens()

    if not token_list:
        info("No tokens stored")
        return

    table = Table(title=f"Tokens ({len(token_list)})")
    table.add_column("ID", style="dim")
    table.add_column("Project", style="cyan")
    table.add_column("Type")
    table.add_column("Value")
    table.add_column("Updated")
    for token in token_list:
        value = token.token_value if show else token.masked_value
        if token.is_expired:
            value = f"[red]{value} (expired)[/red]"
        table.add_row(
            str(token.id),
            token.project_name or str(token.project_id),
            token.token_type,
            value,
            f"{token.updated_at.astimezone():%Y-%m-%d %H:%M:%S}",
        )
    console.print(table)


@tokens.command(name="delete")
@click.argument("token_id", type=int)
@click.pass_context
def tokens_delete(ctx: click.Context, token_id: int) -> None:
    """Delete the token with id TOKEN_ID."""
    with open_database(ctx) as db:
        TokenService(db).delete(token_id)
    success(f"Deleted token {token_id}")
