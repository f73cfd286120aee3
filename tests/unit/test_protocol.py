"""Unit tests for request parsing and error mapping."""

import pytest

from tokenvault.daemon.protocol import (
    INVALID_JSON_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    BrokerResponse,
    StoreTokenRequest,
    exception_to_status,
)
from tokenvault.exceptions import (
    MalformedRequestError,
    ProjectExistsError,
    StoreError,
    TokenNotFoundError,
    ValidationError,
)


class TestStoreTokenRequest:
    """Tests for StoreTokenRequest.parse."""

    def test_valid_body(self) -> None:
        """A complete body should parse."""
        request = StoreTokenRequest.parse({"project": "orders-api", "token": "abc123"})
        assert request.project == "orders-api"
        assert request.token == "abc123"

    def test_keys_ignore_case(self) -> None:
        """Capitalised keys should be accepted."""
        request = StoreTokenRequest.parse({"Project": "orders-api", "TOKEN": "abc123"})
        assert request.project == "orders-api"
        assert request.token == "abc123"

    def test_extra_keys_ignored(self) -> None:
        """Unknown keys should not cause a rejection."""
        request = StoreTokenRequest.parse({"project": "a", "token": "b", "ttl": 60})
        assert request.token == "b"

    @pytest.mark.parametrize("body", [None, [], "text", 42])
    def test_non_object_is_malformed(self, body: object) -> None:
        """Anything but a JSON object should be malformed."""
        with pytest.raises(MalformedRequestError, match=INVALID_JSON_MESSAGE):
            StoreTokenRequest.parse(body)

    def test_non_string_field_is_malformed(self) -> None:
        """Fields of the wrong type should be malformed, not missing."""
        with pytest.raises(MalformedRequestError):
            StoreTokenRequest.parse({"project": "orders-api", "token": 123})

    @pytest.mark.parametrize(
        "body",
        [
            {"project": "", "token": "x"},
            {"project": "orders-api"},
            {"token": "x"},
            {"project": "orders-api", "token": "   "},
            {},
        ],
    )
    def test_missing_fields(self, body: dict[str, str]) -> None:
        """Missing or blank fields should be a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            StoreTokenRequest.parse(body)
        assert not isinstance(exc_info.value, MalformedRequestError)
        assert str(exc_info.value) == MISSING_FIELDS_MESSAGE


class TestBrokerResponse:
    """Tests for BrokerResponse."""

    def test_success(self) -> None:
        response = BrokerResponse.success({"token": "abc"})
        assert response.ok
        assert response.status == 200

    def test_error(self) -> None:
        response = BrokerResponse.error(404, "Token not found")
        assert not response.ok
        assert response.body == {"error": "Token not found"}


class TestExceptionToStatus:
    """Tests for exception_to_status."""

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (ValidationError("bad"), 400),
            (MalformedRequestError("bad"), 400),
            (TokenNotFoundError("orders-api"), 404),
            (ProjectExistsError("orders-api"), 409),
            (StoreError("disk"), 500),
            (RuntimeError("unexpected"), 500),
        ],
    )
    def test_mapping(self, exc: Exception, status: int) -> None:
        assert exception_to_status(exc) == status
