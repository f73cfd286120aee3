"""TokenVault broker lifecycle.

Owns the HTTP listener and moves it through
STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED, with ERRORED reached
when the listener cannot be started or torn down. Every transition is
published on the notification channel. Failures are reported and raised to
the caller; they never take down the embedding process.
"""

import asyncio
import logging
import signal
import sys
from enum import Enum
from pathlib import Path
from typing import Any

from tokenvault.daemon.events import NotificationChannel
from tokenvault.daemon.handlers import HandlerContext, dispatch_request
from tokenvault.daemon.protocol import BrokerResponse
from tokenvault.daemon.transports.http import HttpTransport
from tokenvault.exceptions import StopTimeoutError, StoreError, TokenVaultError
from tokenvault.models.settings import DEFAULT_SERVER_PORT
from tokenvault.services.database import Database
from tokenvault.services.project import ProjectService
from tokenvault.services.token import TokenService
from tokenvault.utils.dates import to_iso, utc_now

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    """Broker lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERRORED = "errored"


class TokenBroker:
    """Local token broker.

    Coordinates the token store, the request handlers and the HTTP
    transport, and publishes status events for the embedding host.
    """

    # The listener only ever binds to loopback
    HOST = "127.0.0.1"
    DEFAULT_PORT = DEFAULT_SERVER_PORT
    DEFAULT_STOP_TIMEOUT = 5.0
    # Gives the OS time to release the port before rebinding
    RESTART_DELAY_SECONDS = 0.5

    def __init__(
        self,
        database: Database,
        port: int | None = None,
        channel: NotificationChannel | None = None,
    ) -> None:
        """Initialize the broker.

        Args:
            database: The token store database, owned by the caller.
            port: Port to listen on. None uses the default; 0 picks a free port.
            channel: Channel for events. A new one is created if not given.
        """
        self._database = database
        self._port = self.DEFAULT_PORT if port is None else port
        self._channel = channel or NotificationChannel()

        self._project_service = ProjectService(database)
        self._token_service = TokenService(database)
        self._context = HandlerContext(
            project_service=self._project_service,
            token_service=self._token_service,
            channel=self._channel,
            status_provider=self.health_check,
            on_store_error=self._report_store_error,
        )

        self._transport: HttpTransport | None = None
        self._state = ServiceState.STOPPED
        self._last_error: Exception | None = None
        self._lifecycle_lock = asyncio.Lock()
        self._shutdown_event: asyncio.Event | None = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the broker is accepting requests."""
        return self._state == ServiceState.RUNNING

    @property
    def port(self) -> int:
        """The bound port while running, otherwise the configured port."""
        if self._transport is not None:
            return self._transport.port
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self.HOST}:{self.port}"

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    @property
    def project_service(self) -> ProjectService:
        return self._project_service

    @property
    def token_service(self) -> TokenService:
        return self._token_service

    @property
    def last_error(self) -> Exception | None:
        """The failure that put the broker in ERRORED, if any."""
        return self._last_error

    async def start(self) -> None:
        """Start the broker.

        Does nothing if already running. May be called again after a
        failed start.

        Raises:
            BindError: If the port is already in use.
            StoreError: If the database cannot be opened.
        """
        async with self._lifecycle_lock:
            if self._state in (ServiceState.RUNNING, ServiceState.STARTING):
                logger.warning("Broker is already running")
                return

            self._set_state(ServiceState.STARTING, f"Server starting on port {self._port}")

            try:
                if not self._database.is_connected:
                    self._database.connect()
                    self._database.init_schema()

                transport = HttpTransport(self.HOST, self._port, self._dispatch)
                await transport.start()
            except Exception as e:
                self._fail(e, f"Server error: {e}")
                raise

            self._transport = transport
            self._last_error = None
            self._shutdown_event = asyncio.Event()
            self._set_state(ServiceState.RUNNING, f"Server started on port {transport.port}")

    async def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Stop the broker.

        New requests are refused at once; in-flight ones get up to
        ``timeout`` seconds to finish before connections are closed.
        Does nothing if the broker is not running.

        Args:
            timeout: Seconds to wait for in-flight requests.
        """
        async with self._lifecycle_lock:
            if self._state != ServiceState.RUNNING or self._transport is None:
                return

            self._set_state(ServiceState.STOPPING, "Server stopping")
            transport = self._transport

            try:
                if not await transport.drain(timeout):
                    timeout_error = StopTimeoutError(timeout)
                    logger.warning("%s, closing connections", timeout_error)
                    self._channel.status_changed(
                        False, f"Forced shutdown: {timeout_error}"
                    )
                await transport.stop()
            except Exception as e:
                logger.exception("Error stopping broker")
                self._transport = None
                self._fail(e, f"Error stopping server: {e}")
                self._signal_shutdown()
                return

            self._transport = None
            self._set_state(ServiceState.STOPPED, "Server stopped")
            self._signal_shutdown()

    async def restart(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Stop, let the OS release the port, then start again.

        Args:
            timeout: Drain timeout for the stop phase.
        """
        await self.stop(timeout)
        await asyncio.sleep(self.RESTART_DELAY_SECONDS)
        await self.start()

    async def run_forever(self) -> None:
        """Run the broker until stopped.

        Blocks until shutdown is requested via signal or stop().
        """
        await self.start()

        if self._shutdown_event:
            await self._shutdown_event.wait()

    async def __aenter__(self) -> "TokenBroker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def health_check(self) -> dict[str, Any]:
        """Get broker status.

        Returns:
            Dictionary with running flag, port and timestamp.
        """
        return {
            "running": self.is_running,
            "port": self.port,
            "timestamp": to_iso(utc_now()),
        }

    def _set_state(self, state: ServiceState, message: str) -> None:
        logger.info("%s", message)
        self._state = state
        self._channel.status_changed(state == ServiceState.RUNNING, message)

    def _fail(self, exc: Exception, message: str) -> None:
        self._last_error = exc
        if isinstance(exc, TokenVaultError):
            logger.error("%s", message)
        else:
            logger.exception("%s", message)
        self._set_state(ServiceState.ERRORED, message)

    def _signal_shutdown(self) -> None:
        if self._shutdown_event:
            self._shutdown_event.set()

    def _report_store_error(self, error: StoreError) -> None:
        """Publish a storage failure seen by a handler; the broker keeps running."""
        logger.error("Storage failure: %s", error)
        self._channel.status_changed(self.is_running, f"Storage error: {error}")

    async def _dispatch(self, operation: str, params: dict[str, Any]) -> BrokerResponse:
        return await dispatch_request(self._context, operation, params)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the broker."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main() -> None:
    """Entry point for tokenvault-daemon command."""
    import argparse

    from tokenvault.services.settings import SettingsService

    parser = argparse.ArgumentParser(description="TokenVault broker")
    parser.add_argument(
        "--home",
        type=Path,
        help="TokenVault home directory (default: $TOKENVAULT_HOME or ~/.tokenvault)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="HTTP port (default: serverPort setting, 9999)",
    )
    parser.add_argument(
        "--verbose", "-V",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        settings_service = SettingsService(args.home)
        settings = settings_service.load()
        database = Database.open(settings_service.database_path(settings))
    except TokenVaultError as e:
        logger.error("%s", e)
        sys.exit(1)

    broker = TokenBroker(
        database,
        port=args.port if args.port is not None else settings.server_port,
    )

    # Set up signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_shutdown(signum: int) -> None:
        """Handle shutdown signal."""
        logger.info("Received signal %s, shutting down...", signal.Signals(signum).name)
        loop.create_task(broker.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_shutdown, sig)

    exit_code = 0
    try:
        loop.run_until_complete(broker.run_forever())
    except KeyboardInterrupt:
        pass
    except TokenVaultError:
        # Already logged and published by the broker
        exit_code = 1
    finally:
        loop.run_until_complete(broker.stop())
        loop.close()
        database.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
