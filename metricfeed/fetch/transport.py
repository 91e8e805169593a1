"""HTTP transport: one GET per call, network failures raised as TransportError."""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

from metricfeed.fetch.config import FetchConfig


logger = structlog.get_logger()


@dataclass(frozen=True)
class TransportResponse:
    """Raw HTTP response: status code and body bytes."""

    status_code: int
    body: bytes


class TransportError(Exception):
    """Raised when no HTTP response was received.

    Covers connection failures, request timeouts, and the overall
    per-attempt deadline.
    """

    def __init__(self, reason: str) -> None:
        """Initialize the error.

        Args:
            reason: Human-readable description of the network failure.
        """
        self.reason = reason
        super().__init__(reason)


class Transport(Protocol):
    """Protocol for the HTTP GET used by the fetch executor."""

    async def get(self, url: str, params: dict[str, str]) -> TransportResponse:
        """Perform one GET request.

        Args:
            url: Request URL without query string.
            params: Query parameters.

        Returns:
            The HTTP response, whatever its status.

        Raises:
            TransportError: If no HTTP response was received.
        """
        ...


class HttpxTransport:
    """Transport backed by a shared httpx.AsyncClient.

    Enforces a per-request timeout through httpx and an overall deadline
    per attempt through asyncio.timeout. Responses are never cached.
    """

    def __init__(
        self,
        config: FetchConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Fetch configuration (timeouts, user agent).
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        self._config = config
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.request_timeout_seconds),
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json",
                "Cache-Control": "no-cache",
            },
            follow_redirects=True,
            transport=transport,
        )
        self._log = logger.bind(component="transport")

    async def get(self, url: str, params: dict[str, str]) -> TransportResponse:
        """Perform one GET request.

        Args:
            url: Request URL without query string.
            params: Query parameters.

        Returns:
            The HTTP response.

        Raises:
            TransportError: On timeout, connection failure, or other httpx errors.
        """
        try:
            async with asyncio.timeout(self._config.resource_timeout_seconds):
                response = await self._client.get(url, params=params)
                body = response.content
        except TimeoutError as e:
            msg = f"Request exceeded {self._config.resource_timeout_seconds}s deadline"
            raise TransportError(msg) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Connection failed: {e}") from e

        return TransportResponse(status_code=response.status_code, body=body)

    async def aclose(self) -> None:
        """Close the underlying client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async context manager exit."""
        await self.aclose()
