"""Integration tests for broker request handlers against a real store."""

import asyncio
from typing import Any

import pytest

from tokenvault import __version__
from tokenvault.daemon.events import NotificationChannel, StatusChanged, TokenReceived
from tokenvault.daemon.handlers import HandlerContext, dispatch_request
from tokenvault.exceptions import StoreError
from tokenvault.services.database import Database
from tokenvault.services.project import ProjectService
from tokenvault.services.token import TokenService


@pytest.fixture
def store_errors() -> list[StoreError]:
    return []


@pytest.fixture
def ctx(
    project_service: ProjectService,
    token_service: TokenService,
    channel: NotificationChannel,
    store_errors: list[StoreError],
) -> HandlerContext:
    """Create a handler context wired to the test store."""
    return HandlerContext(
        project_service=project_service,
        token_service=token_service,
        channel=channel,
        status_provider=lambda: {"running": True, "port": 9999, "timestamp": "now"},
        on_store_error=store_errors.append,
    )


def _dispatch(ctx: HandlerContext, operation: str, params: dict[str, Any] | None = None):
    return asyncio.run(dispatch_request(ctx, operation, params))


class TestPing:
    """Tests for the ping operation."""

    def test_ping(self, ctx: HandlerContext) -> None:
        """ping should report the running service and version."""
        response = _dispatch(ctx, "ping")

        assert response.status == 200
        assert response.body["message"] == "pong"
        assert response.body["status"] == "TokenVault is running"
        assert response.body["version"] == __version__
        assert "timestamp" in response.body


class TestStoreToken:
    """Tests for the store_token operation."""

    def test_store(self, ctx: HandlerContext, token_service: TokenService) -> None:
        """store_token should persist the token and confirm."""
        response = _dispatch(
            ctx, "store_token", {"body": {"project": "orders-api", "token": "abc123"}}
        )

        assert response.status == 200
        assert response.body["status"] == "saved"
        assert response.body["project"] == "orders-api"
        token = token_service.latest_token("orders-api")
        assert token is not None
        assert token.token_value == "abc123"

    def test_store_strips_project_name(
        self, ctx: HandlerContext, project_service: ProjectService
    ) -> None:
        """Surrounding whitespace in the project name should be dropped."""
        response = _dispatch(
            ctx, "store_token", {"body": {"project": "  orders-api ", "token": "abc"}}
        )

        assert response.body["project"] == "orders-api"
        assert project_service.find_by_name("orders-api") is not None

    def test_store_publishes_after_commit(
        self, ctx: HandlerContext, channel: NotificationChannel, token_service: TokenService
    ) -> None:
        """The TokenReceived event should be observable only once the token is readable."""
        subscription = channel.subscribe()
        seen_token: list[str | None] = []

        original_publish = channel.publish

        def checking_publish(event: Any) -> None:
            token = token_service.latest_token("orders-api")
            seen_token.append(token.token_value if token else None)
            original_publish(event)

        channel.publish = checking_publish  # type: ignore[method-assign]

        _dispatch(ctx, "store_token", {"body": {"project": "orders-api", "token": "abc"}})

        assert seen_token == ["abc"]
        event = subscription.get_nowait()
        assert isinstance(event, TokenReceived)
        assert event.project_name == "orders-api"

    @pytest.mark.parametrize(
        "body",
        [
            {"project": "", "token": "x"},
            {"project": "orders-api"},
            {"token": "x"},
        ],
    )
    def test_missing_fields(
        self,
        ctx: HandlerContext,
        channel: NotificationChannel,
        project_service: ProjectService,
        body: dict[str, str],
    ) -> None:
        """Missing fields should return 400 without touching the store."""
        subscription = channel.subscribe()

        response = _dispatch(ctx, "store_token", {"body": body})

        assert response.status == 400
        assert response.body == {"error": "Project and token are required"}
        assert project_service.list_projects() == []
        assert subscription.drain() == []

    def test_malformed_body(self, ctx: HandlerContext, project_service: ProjectService) -> None:
        """A body that is not an object should return 400 Invalid JSON format."""
        response = _dispatch(ctx, "store_token", {"body": ["orders-api", "abc"]})

        assert response.status == 400
        assert response.body == {"error": "Invalid JSON format"}
        assert project_service.list_projects() == []

    def test_store_failure(
        self,
        ctx: HandlerContext,
        database: Database,
        channel: NotificationChannel,
        store_errors: list[StoreError],
    ) -> None:
        """A store failure should return 500 and be reported, without an event."""
        subscription = channel.subscribe()
        database.close()

        response = _dispatch(
            ctx, "store_token", {"body": {"project": "orders-api", "token": "abc"}}
        )

        assert response.status == 500
        assert response.body["error"].startswith("Failed to save token:")
        assert len(store_errors) == 1
        assert subscription.drain() == []


class TestFetchToken:
    """Tests for the fetch_token operation."""

    def test_fetch(self, ctx: HandlerContext, token_service: TokenService) -> None:
        token_service.upsert_token("orders-api", "abc123")

        response = _dispatch(ctx, "fetch_token", {"project": "ORDERS-API"})

        assert response.status == 200
        assert response.body == {"token": "abc123"}

    def test_fetch_unknown_project(self, ctx: HandlerContext) -> None:
        response = _dispatch(ctx, "fetch_token", {"project": "never-seen"})

        assert response.status == 404
        assert response.body == {"error": "Token not found"}

    def test_fetch_project_without_token(
        self, ctx: HandlerContext, project_service: ProjectService
    ) -> None:
        project_service.create("orders-api", 5000)

        response = _dispatch(ctx, "fetch_token", {"project": "orders-api"})

        assert response.status == 404


class TestListProjects:
    """Tests for the list_projects operation."""

    def test_public_fields_only(
        self, ctx: HandlerContext, project_service: ProjectService, token_service: TokenService
    ) -> None:
        """Listing should never include tokens or ids."""
        project_service.create("billing", 8000, "http://localhost:8000", "Billing")
        token_service.upsert_token("orders-api", "secret-token")

        response = _dispatch(ctx, "list_projects")

        assert response.status == 200
        assert response.body == [
            {
                "name": "billing",
                "port": 8000,
                "apiBaseUrl": "http://localhost:8000",
                "description": "Billing",
            },
            {"name": "orders-api", "port": 0, "apiBaseUrl": None, "description": None},
        ]
        assert "secret-token" not in str(response.body)


class TestDispatch:
    """Tests for dispatch_request itself."""

    def test_service_status(self, ctx: HandlerContext) -> None:
        response = _dispatch(ctx, "service_status")
        assert response.body == {"running": True, "port": 9999, "timestamp": "now"}

    def test_unknown_operation(self, ctx: HandlerContext) -> None:
        response = _dispatch(ctx, "drop_tables")
        assert response.status == 404

    def test_unexpected_error_is_500(self, ctx: HandlerContext) -> None:
        """Unexpected handler errors should become 500 responses."""

        def broken_status() -> dict[str, Any]:
            raise RuntimeError("boom")

        ctx.status_provider = broken_status

        response = _dispatch(ctx, "service_status")
        assert response.status == 500
        assert response.body == {"error": "boom"}

    def test_store_error_without_hook(
        self, ctx: HandlerContext, database: Database
    ) -> None:
        """A missing store error hook should not break error handling."""
        ctx.on_store_error = None
        database.close()

        response = _dispatch(ctx, "fetch_token", {"project": "orders-api"})
        assert response.status == 500

    def test_status_changed_not_published_by_handlers(
        self, ctx: HandlerContext, channel: NotificationChannel
    ) -> None:
        """Handlers only publish TokenReceived; status events come from the broker."""
        subscription = channel.subscribe()
        _dispatch(ctx, "store_token", {"body": {"project": "a", "token": "b"}})

        events = subscription.drain()
        assert not any(isinstance(e, StatusChanged) for e in events)
