"""
Connectivity checkers

Sources of connectivity signals for the network probe.
"""

from typing import Optional

import httpx
import structlog

from ...domain.cache.repository_interfaces import ConnectivityChecker, ConnectivityState

logger = structlog.get_logger(__name__)


class StaticConnectivityChecker(ConnectivityChecker):
    """Reports a fixed connectivity state.

    Used when no check URL is configured; defaults to online.
    """

    def __init__(self, state: Optional[ConnectivityState] = None):
        self.state = state or ConnectivityState(
            is_connected=True, is_internet_reachable=True
        )

    async def check(self) -> ConnectivityState:
        return self.state


class HttpConnectivityChecker(ConnectivityChecker):
    """
    Detects connectivity with a HEAD request to a known URL.

    Any HTTP response, whatever its status, proves the network works.
    A refused or unresolvable connection means offline. Timeouts and
    other transport errors are ambiguous and reported as unknown.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 2.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def check(self) -> ConnectivityState:
        try:
            if self._client is not None:
                await self._client.head(self.url, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    await client.head(self.url)

        except httpx.ConnectError as e:
            logger.info("Connectivity check failed to connect", url=self.url, error=str(e))
            return ConnectivityState(is_connected=False, is_internet_reachable=False)

        except httpx.TransportError as e:
            logger.warning(
                "Connectivity check inconclusive",
                url=self.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ConnectivityState()

        return ConnectivityState(is_connected=True, is_internet_reachable=True)
