"""In-memory transaction store for the mock gateway.

Registered transactions advance ``pending → confirmed → updated``, one
step every ``step_delay`` seconds after registration. A transaction marked
to fail goes ``pending → failed`` instead.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from txflow.gateway.contracts import TxState, TxStatus

logger = logging.getLogger(__name__)

SUCCESS_PATH = (TxState.PENDING, TxState.CONFIRMED, TxState.UPDATED)

# Gateway types with no DB side effects
NO_DB_UPDATE_TYPES = frozenset({"access_token_mint"})


@dataclass
class MockTransaction:
    """A registered transaction."""

    tx_hash: str
    tx_type: str
    registered_at: float
    created_at: datetime
    metadata: Optional[dict[str, str]] = None
    instance_id: Optional[str] = None
    user_id: Optional[str] = None
    fail: bool = False
    error: Optional[str] = None


class MockTxStore:
    """Transaction records keyed by hash."""

    def __init__(self, step_delay: float = 3.0, clock: Callable[[], float] = time.monotonic):
        self.step_delay = step_delay
        self._clock = clock
        self._transactions: dict[str, MockTransaction] = {}
        self._failures: dict[str, str] = {}

    def register(
        self,
        tx_hash: str,
        tx_type: str,
        metadata: Optional[dict[str, str]] = None,
        instance_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> MockTransaction:
        """Register a transaction. Registering the same hash again returns the existing record."""
        existing = self._transactions.get(tx_hash)
        if existing:
            logger.debug(f"[MOCK] {tx_hash} already registered")
            return existing

        error = self._failures.pop(tx_hash, None)
        record = MockTransaction(
            tx_hash=tx_hash,
            tx_type=tx_type,
            registered_at=self._clock(),
            created_at=datetime.now(timezone.utc),
            metadata=metadata,
            instance_id=instance_id,
            user_id=user_id,
            fail=error is not None,
            error=error,
        )
        self._transactions[tx_hash] = record
        logger.info(f"[MOCK] Registered {tx_hash} as {tx_type}")
        return record

    def fail(self, tx_hash: str, error: str = "Transaction not found on-chain after max retries") -> None:
        """Make a transaction end in ``failed``; works before or after registration."""
        record = self._transactions.get(tx_hash)
        if record is None:
            self._failures[tx_hash] = error
            return
        record.fail = True
        record.error = error

    def _steps(self, record: MockTransaction) -> int:
        if self.step_delay <= 0:
            return len(SUCCESS_PATH) - 1
        return int((self._clock() - record.registered_at) // self.step_delay)

    def get(self, tx_hash: str) -> Optional[TxStatus]:
        """Current status, or None if the hash was never registered."""
        record = self._transactions.get(tx_hash)
        if record is None:
            return None

        steps = self._steps(record)
        if record.fail:
            state = TxState.PENDING if steps < 1 else TxState.FAILED
        else:
            state = SUCCESS_PATH[min(steps, len(SUCCESS_PATH) - 1)]

        confirmed_at = None
        if state in (TxState.CONFIRMED, TxState.UPDATED):
            confirmed_at = record.created_at + timedelta(seconds=max(self.step_delay, 0))

        return TxStatus(
            tx_hash=record.tx_hash,
            tx_type=record.tx_type,
            state=state,
            last_error=record.error if state == TxState.FAILED else None,
            confirmed_at=confirmed_at,
            retry_count=max(steps, 0),
            created_at=record.created_at,
            metadata=record.metadata,
            instance_id=record.instance_id,
            user_id=record.user_id,
        )

    def pending(self, user_id: Optional[str] = None) -> list[TxStatus]:
        """Non-terminal transactions, oldest first."""
        result = []
        for tx_hash in self._transactions:
            status = self.get(tx_hash)
            if status is None or status.is_terminal:
                continue
            if user_id is not None and status.user_id != user_id:
                continue
            result.append(status)
        return result

    def requires_db_update(self, tx_type: str) -> bool:
        return tx_type not in NO_DB_UPDATE_TYPES

    def clear(self) -> None:
        self._transactions.clear()
        self._failures.clear()
