"""
HTTP Transport Capability

The execution engine only talks to the abstract Transport; pooling, TLS and
redirects are the concern of the concrete implementation.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple
from urllib.parse import urlsplit

import aiohttp

from ..core.exceptions import AttemptTimeoutError, TransportError
from ..core.logging import get_logger
from ..core.models import HTTPResponse

logger = get_logger(__name__)


class Transport(ABC):
    """Sends one HTTP request and returns the raw response."""

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Sequence[Tuple[str, str]],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        """
        Send a request.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Ordered header pairs
            body: Encoded body or None
            timeout: Seconds allowed for this attempt

        Returns:
            HTTPResponse (status, headers, body, duration)

        Raises:
            TransportError: If no response could be obtained
        """

    async def close(self) -> None:
        """Release transport resources."""


class AiohttpTransport(Transport):
    """
    Transport backed by a shared aiohttp.ClientSession.

    Use as an async context manager, or call close() when done.
    """

    def __init__(
        self,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        connection_limit: int = 100,
    ):
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.connection_limit = connection_limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AiohttpTransport":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.connection_limit, ssl=self.verify_ssl
            )
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=headers,
            )
        return self._session

    async def send(
        self,
        method: str,
        url: str,
        headers: Sequence[Tuple[str, str]],
        body: Optional[bytes],
        timeout: float,
    ) -> HTTPResponse:
        session = self._ensure_session()
        start = time.perf_counter()

        try:
            parts = urlsplit(url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise TransportError(
                    f"URL must be an absolute http(s) URL: {url!r}", retryable=False
                )
            logger.debug(f"Sending {method} {url}")

            async with session.request(
                method=method,
                url=url,
                headers=list(headers),
                data=body,
                allow_redirects=self.follow_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                payload = await response.read()
                duration_ms = (time.perf_counter() - start) * 1000
                return HTTPResponse(
                    status_code=response.status,
                    headers=tuple(
                        (key, value) for key, value in response.headers.items()
                    ),
                    body=payload,
                    duration_ms=duration_ms,
                )
        except asyncio.TimeoutError:
            raise AttemptTimeoutError(
                f"Request timed out after {timeout}s", {"url": url}
            )
        except aiohttp.InvalidURL as e:
            raise TransportError(f"Invalid URL: {e}", {"url": url}, retryable=False)
        except aiohttp.ClientConnectionError as e:
            raise TransportError(f"Connection failed: {e}", {"url": url})
        except aiohttp.ClientError as e:
            raise TransportError(f"HTTP client error: {e}", {"url": url})
        except ValueError as e:
            # Malformed URLs and header values with control characters
            raise TransportError(
                f"Request could not be built: {e}", {"url": url}, retryable=False
            )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
