"""Server-sent events status transport.

Subscribes to ``GET /tx/stream/{hash}``. The gateway sends a ``state``
snapshot on connect, ``state_change`` on each transition and ``complete``
before closing. If the connection fails, or the stream closes before a
terminal state, watching continues with the fallback transport.
"""

import logging
from typing import Optional

from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import TxStatus
from txflow.gateway.sse import event_to_status
from txflow.watcher.base import Emit, StatusTransport

logger = logging.getLogger(__name__)


class StreamingTransport(StatusTransport):
    """Status transport backed by the gateway's event stream."""

    name = "streaming"

    def __init__(self, gateway: GatewayClient, fallback: Optional[StatusTransport] = None):
        self.gateway = gateway
        self.fallback = fallback

    async def run(self, tx_hash: str, emit: Emit) -> None:
        last: Optional[TxStatus] = None
        stream = self.gateway.stream_status(tx_hash)

        try:
            async for event in stream:
                status = event_to_status(event, tx_hash, last)
                if status is None:
                    continue
                last = status
                if await emit(status):
                    return
            logger.info(f"Stream for {tx_hash} closed before a terminal state")
        except Exception as e:
            logger.warning(f"Stream for {tx_hash} failed: {e}")
        finally:
            await stream.aclose()

        if self.fallback is None:
            return
        logger.info(f"Falling back to {self.fallback.name} for {tx_hash}")
        await self.fallback.run(tx_hash, emit)
