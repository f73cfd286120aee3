"""HTTP client for talking to a running broker.

The CLI is synchronous; each call runs one aiohttp request to completion.
"""

import asyncio
from typing import Any
from urllib.parse import quote

import aiohttp

from tokenvault.exceptions import TokenVaultError
from tokenvault.models.settings import DEFAULT_SERVER_PORT


class BrokerError(TokenVaultError):
    """Error response from the broker."""

    def __init__(self, message: str, status: int | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message.
            status: HTTP status returned by the broker.
        """
        super().__init__(message)
        self.status = status


class BrokerUnavailableError(BrokerError):
    """Broker is not running or unreachable."""

    pass


class BrokerClient:
    """Client for the broker's HTTP API.

    Example:
        client = BrokerClient(port=9999)
        if client.is_running():
            client.store("orders-api", token)
            print(client.fetch("orders-api"))
    """

    HOST = "127.0.0.1"

    def __init__(self, port: int = DEFAULT_SERVER_PORT, timeout: float = 5.0) -> None:
        """Initialize the client.

        Args:
            port: Broker port.
            timeout: Total seconds allowed per request.
        """
        self._port = port
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return f"http://{self.HOST}:{self._port}"

    def is_running(self) -> bool:
        """Check if the broker answers /ping."""
        try:
            self.ping()
            return True
        except BrokerError:
            return False

    def ping(self) -> dict[str, Any]:
        return self.call("GET", "/ping")

    def status(self) -> dict[str, Any]:
        return self.call("GET", "/status")

    def store(self, project: str, token: str) -> dict[str, Any]:
        return self.call("POST", "/store", {"project": project, "token": token})

    def fetch(self, project: str) -> str:
        """Fetch the current token of a project.

        Raises:
            BrokerError: With status 404 if the project has no token.
        """
        result = self.call("GET", f"/fetch/{quote(project, safe='')}")
        return result["token"]

    def projects(self) -> list[dict[str, Any]]:
        return self.call("GET", "/projects")

    def call(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path on the broker, starting with "/".
            payload: Optional JSON body.

        Returns:
            The decoded response body.

        Raises:
            BrokerUnavailableError: If the broker cannot be reached.
            BrokerError: If the broker returns an error status.
        """
        return asyncio.run(self._request(method, path, payload))

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None
    ) -> Any:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, f"{self.base_url}{path}", json=payload
                ) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = None
                    if response.status >= 400:
                        message = data.get("error") if isinstance(data, dict) else None
                        raise BrokerError(
                            message or f"HTTP {response.status}", status=response.status
                        )
                    return data
        except aiohttp.ClientConnectionError as e:
            raise BrokerUnavailableError(
                f"TokenVault broker is not reachable at {self.base_url}"
            ) from e
        except asyncio.TimeoutError as e:
            raise BrokerUnavailableError(
                f"TokenVault broker at {self.base_url} did not answer in time"
            ) from e
