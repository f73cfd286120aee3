"""Project management commands."""

import click
from rich.table import Table

from tokenvault.cli.common import console, info, open_database, success
from tokenvault.exceptions import ProjectNotFoundError
from tokenvault.services.project import ProjectService
from tokenvault.services.token import TokenService


@click.group()
def projects() -> None:
    """Manage projects."""
    pass


@projects.command(name="list")
@click.pass_context
def projects_list(ctx: click.Context) -> None:
    """List projects and whether each has a token."""
    with open_database(ctx) as db:
        project_list = ProjectService(db).list_projects()
        token_service = TokenService(db)
        has_token = {p.id: bool(token_service.list_by_project(p.id)) for p in project_list}

    if not project_list:
        info("No projects yet")
        return

    table = Table(title=f"Projects ({len(project_list)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Port")
    table.add_column("Base URL")
    table.add_column("Description")
    table.add_column("Token")
    for project in project_list:
        table.add_row(
            str(project.id),
            project.name,
            str(project.port) if project.port else "[dim]auto[/dim]",
            project.api_base_url or "",
            project.description or "",
            "[green]yes[/green]" if has_token[project.id] else "[dim]no[/dim]",
        )
    console.print(table)


@projects.command(name="add")
@click.argument("name")
@click.option("--port", "-p", type=int, default=0, help="Local port the backend runs on")
@click.option("--url", "api_base_url", help="Base URL for API requests")
@click.option("--description", "-d", help="Project description")
@click.pass_context
def projects_add(
    ctx: click.Context,
    name: str,
    port: int,
    api_base_url: str | None,
    description: str | None,
) -> None:
    """Register project NAME, or update it if it exists.

    Examples:
        tokenvault projects add orders-api --port 5000
        tokenvault projects add billing --url http://localhost:8080/api
    """
    with open_database(ctx) as db:
        project = ProjectService(db).create_or_update(name, port, api_base_url, description)
    success(f"Saved project {project.name} (ID {project.id})")


@projects.command(name="remove")
@click.argument("name")
@click.pass_context
def projects_remove(ctx: click.Context, name: str) -> None:
    """Delete project NAME and its token."""
    with open_database(ctx) as db:
        project_service = ProjectService(db)
        project = project_service.find_by_name(name)
        if project is None:
            raise ProjectNotFoundError(name)
        project_service.delete(project.id)
    success(f"Removed project {project.name}")
