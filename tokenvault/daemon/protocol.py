"""Wire protocol types and error mapping for the TokenVault broker."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic import ValidationError as PydanticValidationError

from tokenvault.exceptions import MalformedRequestError, ValidationError

# Error messages returned in {"error": ...} bodies
INVALID_JSON_MESSAGE = "Invalid JSON format"
MISSING_FIELDS_MESSAGE = "Project and token are required"
TOKEN_NOT_FOUND_MESSAGE = "Token not found"
UNAVAILABLE_MESSAGE = "Service unavailable"


class StoreTokenRequest(BaseModel):
    """Body of POST /store."""

    project: StrictStr | None = None
    token: StrictStr | None = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def parse(cls, body: Any) -> "StoreTokenRequest":
        """Parse and validate an ingest body.

        Key names are matched case-insensitively ("Project" works too).
        Structural problems are reported before missing fields.

        Args:
            body: Decoded JSON value.

        Returns:
            Request with non-empty project and token.

        Raises:
            MalformedRequestError: If the body is not an object of strings.
            ValidationError: If project or token is missing or blank.
        """
        if not isinstance(body, dict):
            raise MalformedRequestError(INVALID_JSON_MESSAGE)

        normalized = {str(k).lower(): v for k, v in body.items()}
        try:
            request = cls.model_validate(normalized)
        except PydanticValidationError as e:
            raise MalformedRequestError(INVALID_JSON_MESSAGE) from e

        if not request.project or not request.project.strip():
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        if not request.token or not request.token.strip():
            raise ValidationError(MISSING_FIELDS_MESSAGE)
        return request


@dataclass
class BrokerResponse:
    """Transport-neutral handler result: an HTTP status and a JSON body."""

    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def success(cls, body: Any) -> "BrokerResponse":
        return cls(status=200, body=body)

    @classmethod
    def error(cls, status: int, message: str) -> "BrokerResponse":
        return cls(status=status, body={"error": message})


# Map exception types to HTTP status codes
EXCEPTION_TO_STATUS: dict[str, int] = {
    "ValidationError": 400,
    "MalformedRequestError": 400,
    "NotFoundError": 404,
    "ProjectNotFoundError": 404,
    "TokenNotFoundError": 404,
    "ProjectExistsError": 409,
    "StoreError": 500,
}


def exception_to_status(exc: Exception) -> int:
    """Map an exception to its HTTP status code.

    Args:
        exc: The exception to map.

    Returns:
        The status code, 500 for anything unknown.
    """
    exc_type = type(exc).__name__
    return EXCEPTION_TO_STATUS.get(exc_type, 500)
