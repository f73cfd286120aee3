"""Request handlers for the TokenVault broker.

Handlers are transport-neutral: they take decoded parameters, work on the
store through the services and return JSON-ready data. Store calls run in a
worker thread so a slow disk never stalls the event loop.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tokenvault import __version__
from tokenvault.daemon.events import NotificationChannel
from tokenvault.daemon.protocol import BrokerResponse, StoreTokenRequest, exception_to_status
from tokenvault.exceptions import StoreError, TokenNotFoundError, TokenVaultError
from tokenvault.services.project import ProjectService
from tokenvault.services.token import TokenService
from tokenvault.utils.dates import to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    """Context providing access to services and broker state for handlers."""

    project_service: ProjectService
    token_service: TokenService
    channel: NotificationChannel
    status_provider: Callable[[], dict[str, Any]]
    on_store_error: Callable[[StoreError], None] | None = None


# Handler functions


async def handle_ping(ctx: HandlerContext, params: dict[str, Any]) -> dict[str, Any]:
    """Health check."""
    return {
        "message": "pong",
        "status": "TokenVault is running",
        "version": __version__,
        "timestamp": to_iso(utc_now()),
    }


async def handle_store_token(ctx: HandlerContext, params: dict[str, Any]) -> dict[str, Any]:
    """Store a token pushed by a backend.

    Args:
        ctx: Handler context.
        params: Parameters including 'body', the decoded JSON request body.

    Returns:
        Confirmation with the project name and a timestamp.
    """
    request = StoreTokenRequest.parse(params.get("body"))
    project = request.project.strip()  # type: ignore[union-attr]

    try:
        await asyncio.to_thread(ctx.token_service.upsert_token, project, request.token)
    except StoreError as e:
        raise StoreError(f"Failed to save token: {e}") from e

    # Only announce after the transaction has committed
    received_at = utc_now()
    ctx.channel.token_received(project, received_at)

    return {
        "status": "saved",
        "project": project,
        "timestamp": to_iso(received_at),
    }


async def handle_fetch_token(ctx: HandlerContext, params: dict[str, Any]) -> dict[str, Any]:
    """Get the current token of a project.

    Args:
        ctx: Handler context.
        params: Parameters including 'project' (matched ignoring case).

    Returns:
        Dictionary with the token value.
    """
    project = params.get("project") or ""
    token = await asyncio.to_thread(ctx.token_service.latest_token, project)
    if token is None:
        raise TokenNotFoundError(project)
    return {"token": token.token_value}


async def handle_list_projects(ctx: HandlerContext, params: dict[str, Any]) -> list[dict[str, Any]]:
    """List projects with their public fields only."""
    projects = await asyncio.to_thread(ctx.project_service.list_projects)
    return [p.public_dict() for p in projects]


async def handle_service_status(ctx: HandlerContext, params: dict[str, Any]) -> dict[str, Any]:
    """Report whether the broker is running and on which port."""
    return ctx.status_provider()


# Handler registry

Handler = Callable[[HandlerContext, dict[str, Any]], Awaitable[Any]]

HANDLERS: dict[str, Handler] = {
    "ping": handle_ping,
    "store_token": handle_store_token,
    "fetch_token": handle_fetch_token,
    "list_projects": handle_list_projects,
    "service_status": handle_service_status,
}


async def dispatch_request(
    ctx: HandlerContext,
    operation: str,
    params: dict[str, Any] | None,
) -> BrokerResponse:
    """Dispatch a request to the appropriate handler.

    Client errors become 4xx responses here; store failures become 500s and
    are reported to the lifecycle controller. Nothing is re-raised.

    Args:
        ctx: Handler context with services.
        operation: The operation name.
        params: Operation parameters.

    Returns:
        Response with status and JSON body.
    """
    handler = HANDLERS.get(operation)
    if handler is None:
        return BrokerResponse.error(404, f"Unknown operation: {operation}")

    try:
        result = await handler(ctx, params or {})
        return BrokerResponse.success(result)
    except StoreError as e:
        if ctx.on_store_error is not None:
            ctx.on_store_error(e)
        return BrokerResponse.error(500, str(e))
    except TokenVaultError as e:
        return BrokerResponse.error(exception_to_status(e), str(e))
    except Exception as e:
        logger.exception("Error handling request %s", operation)
        return BrokerResponse.error(500, str(e))
