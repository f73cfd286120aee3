"""Broker commands: run it in the foreground and talk to a running one."""

import asyncio
import contextlib
import signal

import click
from rich.table import Table

from tokenvault.cli.client import BrokerClient
from tokenvault.cli.common import console, get_settings_service, info, open_database, success
from tokenvault.daemon.events import StatusChanged, Subscription, TokenReceived
from tokenvault.daemon.server import TokenBroker, setup_logging
from tokenvault.services.database import Database


async def _print_events(subscription: Subscription) -> None:
    """Print broker events until cancelled."""
    while True:
        event = await asyncio.to_thread(subscription.get, 0.25)
        if isinstance(event, TokenReceived):
            console.print(
                f"[green]Token received[/green] for [cyan]{event.project_name}[/cyan] "
                f"at {event.received_at:%H:%M:%S}"
            )
        elif isinstance(event, StatusChanged):
            color = "green" if event.is_running else "yellow"
            console.print(f"[{color}]{event.message}[/{color}]")


async def _serve(database: Database, port: int) -> None:
    broker = TokenBroker(database, port=port)
    subscription = broker.channel.subscribe()
    printer = asyncio.create_task(_print_events(subscription))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, lambda: loop.create_task(broker.stop()))

    try:
        await broker.run_forever()
    finally:
        await broker.stop()
        printer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await printer
        subscription.close()


def _client(ctx: click.Context, port: int | None) -> BrokerClient:
    if port is None:
        port = get_settings_service(ctx).load().server_port
    return BrokerClient(port=port)


@click.command()
@click.option("--port", "-p", type=int, help="HTTP port (default: serverPort setting)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def serve(ctx: click.Context, port: int | None, verbose: bool) -> None:
    """Run the token broker in the foreground."""
    setup_logging(verbose)
    settings = get_settings_service(ctx).load()
    with open_database(ctx) as database:
        asyncio.run(_serve(database, port if port is not None else settings.server_port))


@click.command()
@click.option("--port", "-p", type=int, help="Broker port (default: serverPort setting)")
@click.pass_context
def ping(ctx: click.Context, port: int | None) -> None:
    """Check that the broker is answering."""
    result = _client(ctx, port).ping()
    success(f"{result['status']} (version {result['version']})")


@click.command()
@click.option("--port", "-p", type=int, help="Broker port (default: serverPort setting)")
@click.pass_context
def status(ctx: click.Context, port: int | None) -> None:
    """Show broker status and known projects."""
    client = _client(ctx, port)
    result = client.status()
    state = "[green]running[/green]" if result["running"] else "[yellow]stopped[/yellow]"
    console.print(f"Broker: {state} on port {result['port']}")

    projects = client.projects()
    if not projects:
        info("No projects yet")
        return

    table = Table(title="Projects")
    table.add_column("Name", style="cyan")
    table.add_column("Port")
    table.add_column("Base URL")
    for project in projects:
        table.add_row(project["name"], str(project["port"]), project["apiBaseUrl"] or "")
    console.print(table)


@click.command()
@click.argument("project")
@click.argument("token")
@click.option("--port", "-p", type=int, help="Broker port (default: serverPort setting)")
@click.pass_context
def store(ctx: click.Context, project: str, token: str, port: int | None) -> None:
    """Push TOKEN to the broker as the current token of PROJECT."""
    result = _client(ctx, port).store(project, token)
    success(f"Token saved for {result['project']}")


@click.command()
@click.argument("project")
@click.option("--port", "-p", type=int, help="Broker port (default: serverPort setting)")
@click.pass_context
def fetch(ctx: click.Context, project: str, port: int | None) -> None:
    """Print the current token of PROJECT."""
    click.echo(_client(ctx, port).fetch(project))
