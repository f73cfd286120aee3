"""Pytest fixtures for TokenVault tests."""

import asyncio
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from tokenvault.daemon.events import NotificationChannel
from tokenvault.daemon.server import TokenBroker
from tokenvault.services.database import Database
from tokenvault.services.project import ProjectService
from tokenvault.services.token import TokenService


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Create an empty TokenVault home directory.

    Returns:
        Path to the home directory.
    """
    home = tmp_path / "tokenvault-home"
    home.mkdir()
    return home


@pytest.fixture
def database(home: Path) -> Iterator[Database]:
    """Create a connected database in the test home directory."""
    db = Database.open(home / "tokenvault.db")
    yield db
    db.close()


@pytest.fixture
def project_service(database: Database) -> ProjectService:
    return ProjectService(database)


@pytest.fixture
def token_service(database: Database) -> TokenService:
    return TokenService(database)


@pytest.fixture
def channel() -> NotificationChannel:
    return NotificationChannel()


class BrokerThread:
    """Runs a broker on its own event loop in a background thread.

    Lets synchronous code (the CLI, BrokerClient) talk to a live broker.
    """

    def __init__(self, database: Database) -> None:
        self.database = database
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self.broker: TokenBroker | None = None

    @property
    def port(self) -> int:
        assert self.broker is not None
        return self.broker.port

    def start(self) -> None:
        self.thread.start()

        async def _start() -> TokenBroker:
            broker = TokenBroker(self.database, port=0)
            await broker.start()
            return broker

        self.broker = asyncio.run_coroutine_threadsafe(_start(), self.loop).result(10)

    def stop(self) -> None:
        if self.broker is not None:
            asyncio.run_coroutine_threadsafe(self.broker.stop(), self.loop).result(10)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(5)
        self.loop.close()


@pytest.fixture
def running_broker(database: Database) -> Iterator[BrokerThread]:
    """Start a broker on a free loopback port for the duration of a test."""
    broker_thread = BrokerThread(database)
    broker_thread.start()
    yield broker_thread
    broker_thread.stop()
