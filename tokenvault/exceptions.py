"""Custom exceptions for TokenVault."""


class TokenVaultError(Exception):
    """Base exception for TokenVault errors."""

    pass


class ValidationError(TokenVaultError):
    """Raised when client input is missing or invalid."""

    pass


class MalformedRequestError(ValidationError):
    """Raised when a request body cannot be parsed into the expected structure."""

    pass


class NotFoundError(TokenVaultError):
    """Base for lookups that found nothing."""

    pass


class ProjectNotFoundError(NotFoundError):
    """Raised when a project cannot be found."""

    def __init__(self, project: str | int) -> None:
        self.project = project
        super().__init__(f"Project not found: {project}")


class TokenNotFoundError(NotFoundError):
    """Raised when no current token exists for a project or id."""

    def __init__(self, query: str | int) -> None:
        self.query = query
        super().__init__("Token not found")


class ProjectExistsError(TokenVaultError):
    """Raised when creating a project whose name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Project already exists: {name}")


class StoreError(TokenVaultError):
    """Raised when the underlying database fails (I/O, locking, corruption)."""

    pass


class BindError(TokenVaultError):
    """Raised when the broker cannot acquire its listening port."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        self.host = host
        self.port = port
        super().__init__(f"Could not bind {host}:{port}: {reason}")


class StopTimeoutError(TokenVaultError, TimeoutError):
    """Raised internally when in-flight requests outlive the stop deadline."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Requests still in flight after {timeout:.1f}s")


class ConfigError(TokenVaultError):
    """Raised when the settings file is unreadable or a value is invalid."""

    pass
