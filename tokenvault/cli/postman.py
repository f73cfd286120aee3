"""Generate the Postman pre-request script."""

from pathlib import Path

import click

from tokenvault.cli.common import get_settings_service, info, open_database, success, warning
from tokenvault.services.postman import mappings_from_projects, parse_mapping, render_script
from tokenvault.services.project import ProjectService


@click.command(name="setup-postman")
@click.option(
    "--map", "-m", "mappings",
    multiple=True,
    help="PORT=PROJECT (or HOST=PROJECT) mapping; repeatable. Defaults to registered projects.",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the script to this file instead of stdout",
)
@click.pass_context
def setup_postman(ctx: click.Context, mappings: tuple[str, ...], output: Path | None) -> None:
    """Generate a Postman pre-request script that fetches tokens automatically.

    Paste the script into a collection's Pre-request Script tab; requests
    then use {{token}} from the environment.

    Examples:
        tokenvault setup-postman
        tokenvault setup-postman -m 5000=orders-api -m 8000=billing -o tokenvault.js
    """
    settings = get_settings_service(ctx).load()

    if mappings:
        mapping = dict(parse_mapping(m) for m in mappings)
    else:
        with open_database(ctx) as db:
            mapping = mappings_from_projects(ProjectService(db))
        if not mapping:
            warning("No projects with a port are registered; the script will skip every request")
            info("Add one with: tokenvault projects add NAME --port PORT")

    script = render_script(mapping, settings.server_port)

    if output is None:
        click.echo(script)
        return

    output.write_text(script, encoding="utf-8")
    success(f"Script written to {output} ({len(mapping)} mapping(s))")
