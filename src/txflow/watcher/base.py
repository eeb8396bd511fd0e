"""Status transport interface.

A transport reports the gateway's view of one transaction hash until a
terminal state is reached. The broker runs one transport per watched hash
and fans its updates out to every observer.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable

from txflow.gateway.contracts import TxStatus

logger = logging.getLogger(__name__)

Emit = Callable[[TxStatus], Awaitable[bool]]


class StatusTransport(ABC):
    """Abstract base class for status transports.

    ``run`` returns once ``emit`` reports the watched hash terminal or the
    transport gives up. A terminal status for another hash does not end
    it. It is cancelled when the last observer leaves.
    """

    name = "base"

    @abstractmethod
    async def run(self, tx_hash: str, emit: Emit) -> None:
        """Emit status updates for a transaction hash.

        Args:
            tx_hash: Transaction to observe
            emit: Coroutine function receiving each status; returns True once
                the watched hash has reached a terminal state
        """
        pass


class ScriptedTransport(StatusTransport):
    """Transport that replays a fixed status sequence (no gateway queries).

    Useful for development and testing.
    """

    name = "scripted"

    def __init__(self, statuses: Iterable[TxStatus], delay: float = 0.0):
        self._statuses = list(statuses)
        self.delay = delay
        self.runs: list[str] = []

    async def run(self, tx_hash: str, emit: Emit) -> None:
        self.runs.append(tx_hash)
        for status in self._statuses:
            if self.delay:
                await asyncio.sleep(self.delay)
            if await emit(status):
                return
        logger.debug(f"[SCRIPTED] Sequence for {tx_hash} ended without terminal state")

