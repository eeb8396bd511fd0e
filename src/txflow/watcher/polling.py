"""Polling status transport.

Queries ``GET /tx/status/{hash}`` on a fixed interval. The first check is
immediate. A 404 means the gateway has not registered the hash yet, and
request failures are treated as transient: both are logged and retried on
the next tick.
"""

import asyncio
import logging
from typing import Optional

from txflow.gateway.client import GatewayClient
from txflow.watcher.base import Emit, StatusTransport

logger = logging.getLogger(__name__)


class PollingTransport(StatusTransport):
    """Status transport that polls the gateway."""

    name = "polling"

    def __init__(
        self,
        gateway: GatewayClient,
        interval: float = 5.0,
        max_polls: Optional[int] = None,
    ):
        """Initialize polling transport.

        Args:
            gateway: Gateway client
            interval: Seconds between polls
            max_polls: Give up after this many polls (None = until cancelled)
        """
        self.gateway = gateway
        self.interval = interval
        self.max_polls = max_polls

    async def run(self, tx_hash: str, emit: Emit) -> None:
        polls = 0

        while True:
            polls += 1
            try:
                status = await self.gateway.get_status(tx_hash)
            except Exception as e:
                logger.warning(f"Status poll {polls} for {tx_hash} failed: {e}")
                status = None

            if status is None:
                logger.debug(f"No status for {tx_hash} yet (poll {polls})")
            else:
                if await emit(status):
                    return

            if self.max_polls and polls >= self.max_polls:
                logger.warning(f"Stopped polling {tx_hash} after {polls} polls")
                return

            await asyncio.sleep(self.interval)
