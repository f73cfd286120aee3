"""HTTP transport for the TokenVault broker.

Provides the REST endpoints that backends and API clients talk to:
- GET /ping -> ping
- POST /store -> store_token
- GET /fetch/{project} -> fetch_token
- GET /projects -> list_projects
- GET /status -> service_status

Response format:
- Success: the handler's JSON payload
- Error: {"error": "message"} with a 4xx/5xx status

Any origin may call the API; access control comes from binding to loopback.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from tokenvault.daemon.protocol import (
    INVALID_JSON_MESSAGE,
    UNAVAILABLE_MESSAGE,
    BrokerResponse,
)
from tokenvault.exceptions import BindError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "600",
}

Dispatcher = Callable[[str, dict[str, Any]], Awaitable[BrokerResponse]]


class HttpTransport:
    """HTTP transport using aiohttp.

    Tracks in-flight requests so that shutdown can wait for them. Once
    draining starts, new requests are answered with 503 instead of queued.
    """

    # Seconds aiohttp waits for leftover handlers after the drain phase
    FORCE_CLOSE_TIMEOUT = 0.5
    # Upper bound on listener teardown, so stop() can never hang
    CLEANUP_TIMEOUT = 5.0

    def __init__(self, host: str, port: int, dispatcher: Dispatcher) -> None:
        """Initialize the HTTP transport.

        Args:
            host: Host to bind to.
            port: Port to listen on; 0 picks a free port.
            dispatcher: Async function mapping (operation, params) to a response.
        """
        self._host = host
        self._port = port
        self._dispatcher = dispatcher
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._bound_port: int | None = None

        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._draining = False

    @property
    def port(self) -> int:
        """The bound port once started, otherwise the configured one."""
        return self._bound_port if self._bound_port is not None else self._port

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self._host}:{self.port}"

    @property
    def is_running(self) -> bool:
        """Check if the transport is running."""
        return self._site is not None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def start(self) -> None:
        """Start the HTTP server.

        Raises:
            BindError: If the port cannot be bound.
        """
        self._app = web.Application(
            middlewares=[self._error_middleware, self._drain_middleware]
        )
        self._app.on_response_prepare.append(self._on_response_prepare)
        self._setup_routes()

        self._draining = False
        self._runner = web.AppRunner(
            self._app, shutdown_timeout=self.FORCE_CLOSE_TIMEOUT
        )
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        try:
            await site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            raise BindError(self._host, self._port, e.strerror or str(e)) from e

        self._site = site
        addresses = self._runner.addresses
        self._bound_port = addresses[0][1] if addresses else self._port
        logger.info("HTTP API listening at %s", self.url)

    async def drain(self, timeout: float) -> bool:
        """Stop accepting requests and wait for in-flight ones.

        Args:
            timeout: Seconds to wait.

        Returns:
            True if all requests finished, False if the deadline passed.
        """
        self._draining = True
        if self._in_flight == 0:
            return True
        logger.info("Waiting for %d in-flight request(s)", self._in_flight)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self) -> None:
        """Close the listener and every remaining connection."""
        self._draining = True
        if self._runner:
            try:
                await asyncio.wait_for(self._runner.cleanup(), self.CLEANUP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("HTTP server did not close within %.1fs", self.CLEANUP_TIMEOUT)
        self._site = None
        self._runner = None
        self._app = None
        self._bound_port = None
        logger.info("HTTP server stopped")

    def _setup_routes(self) -> None:
        """Set up API routes."""
        if self._app is None:
            return

        router = self._app.router
        router.add_get("/ping", self._handle_ping)
        router.add_post("/store", self._handle_store)
        router.add_get("/fetch/{project}", self._handle_fetch)
        router.add_get("/projects", self._handle_projects)
        router.add_get("/status", self._handle_status)

    # Middlewares

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler: Any) -> web.StreamResponse:
        """Answer CORS preflights and render HTTP errors as JSON."""
        if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
            return web.Response(status=204)
        try:
            return await handler(request)
        except web.HTTPException as e:
            if e.status < 400:
                raise
            return self._error_response(e.reason, e.status)

    @web.middleware
    async def _drain_middleware(self, request: web.Request, handler: Any) -> web.StreamResponse:
        """Count in-flight requests and refuse new ones while draining."""
        if self._draining:
            return self._error_response(UNAVAILABLE_MESSAGE, 503)

        self._in_flight += 1
        self._idle.clear()
        try:
            return await handler(request)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def _on_response_prepare(
        self, request: web.Request, response: web.StreamResponse
    ) -> None:
        response.headers.update(CORS_HEADERS)
        response.headers["Server"] = "TokenVault"

    # Response helpers

    def _error_response(self, message: str, status: int) -> web.Response:
        return web.json_response({"error": message}, status=status)

    def _to_response(self, response: BrokerResponse) -> web.Response:
        return web.json_response(response.body, status=response.status)

    async def _call_handler(self, operation: str, params: dict[str, Any]) -> web.Response:
        """Call a broker operation and return an HTTP response."""
        response = await self._dispatcher(operation, params)
        return self._to_response(response)

    # Route handlers

    async def _handle_ping(self, request: web.Request) -> web.Response:
        """Handle GET /ping."""
        return await self._call_handler("ping", {})

    async def _handle_store(self, request: web.Request) -> web.Response:
        """Handle POST /store."""
        try:
            body = await request.json()
        except ValueError:
            return self._error_response(INVALID_JSON_MESSAGE, 400)

        return await self._call_handler("store_token", {"body": body})

    async def _handle_fetch(self, request: web.Request) -> web.Response:
        """Handle GET /fetch/{project}."""
        project = request.match_info["project"]
        return await self._call_handler("fetch_token", {"project": project})

    async def _handle_projects(self, request: web.Request) -> web.Response:
        """Handle GET /projects."""
        return await self._call_handler("list_projects", {})

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Handle GET /status."""
        return await self._call_handler("service_status", {})
