"""
Network Probe

Best-effort, time-bounded connectivity check in front of remote fetches.
Biased toward "available": claiming offline while online starves the UI,
so only an unambiguous offline signal counts.
"""

import asyncio
from typing import Optional

import structlog

from ...constants import NETWORK_PROBE_TIMEOUT_MS
from ...domain.cache.repository_interfaces import ConnectivityChecker
from ...infrastructure.network.connectivity import StaticConnectivityChecker

logger = structlog.get_logger(__name__)


class NetworkProbe:
    """Races a connectivity check against a timeout."""

    def __init__(
        self,
        checker: Optional[ConnectivityChecker] = None,
        timeout_ms: float = NETWORK_PROBE_TIMEOUT_MS,
    ):
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.checker = checker or StaticConnectivityChecker()
        self.timeout_ms = timeout_ms

    async def is_available(self) -> bool:
        """
        Check whether the network should be treated as available.

        Returns:
            False only if the checker reports both not connected and not
            reachable within the timeout; True otherwise, including on
            timeout or error.
        """
        try:
            state = await asyncio.wait_for(
                self.checker.check(), timeout=self.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            logger.debug("Network check timed out, assuming online", timeout_ms=self.timeout_ms)
            return True
        except Exception as e:
            logger.warning("Error checking network", error=str(e), error_type=type(e).__name__)
            return True

        return not state.definitely_offline
