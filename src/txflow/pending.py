"""Pending transaction registry.

Lists the signed-in user's transactions the gateway has not finished
with. The list is refreshed on an interval, including while empty, since
new transactions can appear at any time. Polling pauses while the session is
signed out and resumes on login until the consumer stops it.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from txflow.config import get_settings
from txflow.gateway.client import GatewayClient
from txflow.gateway.contracts import TxStatus
from txflow.session import Session
from txflow.utils.callbacks import Callback, invoke_callback

logger = logging.getLogger(__name__)


class PendingList:
    """Observable, self-refreshing list of pending transactions.

    Created by ``PendingTransactionRegistry.list``.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        session: Session,
        poll_interval: float,
        max_items: int,
        on_change: Optional[Callback] = None,
    ):
        self.gateway = gateway
        self.session = session
        self.poll_interval = poll_interval
        self.max_items = max_items

        self._items: list[TxStatus] = []
        self._error: Optional[Exception] = None
        self._loading = False
        self._listeners: list[Callback] = [on_change] if on_change else []
        self._task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._unsubscribe_session: Optional[Callable[[], None]] = None

    @property
    def items(self) -> list[TxStatus]:
        return list(self._items)

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def has_pending(self) -> bool:
        return bool(self._items)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Callback) -> Callable[[], None]:
        """Register a listener called with the items after every refresh."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Start polling. Must be called from within a running event loop.

        Polling pauses while signed out and resumes on the next login
        until ``stop()`` is called.
        """
        if self._unsubscribe_session is None:
            self._unsubscribe_session = self.session.on_change(self._on_session_change)
        self._start_polling()

    def stop(self) -> None:
        """Stop polling. Items fetched so far stay readable."""
        self._cancel_polling()
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None

    async def aclose(self) -> None:
        tasks = [t for t in (self._task, *self._background) if t is not None]
        self.stop()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def refresh(self) -> None:
        """Fetch the pending list now.

        A failed fetch records ``error`` and keeps the previous items.
        """
        if not self.session.is_authenticated:
            await self._clear()
            return

        self._loading = True
        try:
            statuses = await self.gateway.list_pending()
        except Exception as e:
            self._error = e
            logger.warning(f"Failed to fetch pending transactions: {e}")
            return
        finally:
            self._loading = False

        self._error = None
        self._items = statuses[: self.max_items]
        logger.debug(f"Pending transactions: {len(self._items)}")
        await self._notify()

    def _start_polling(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    def _cancel_polling(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _poll_loop(self) -> None:
        while True:
            await self.refresh()
            if not self.session.is_authenticated:
                logger.info("No session, pausing pending transaction polling")
                return
            await asyncio.sleep(self.poll_interval)

    async def _clear(self) -> None:
        had_items = bool(self._items)
        self._items = []
        self._error = None
        if had_items:
            await self._notify()

    async def _notify(self) -> None:
        items = self.items
        for listener in list(self._listeners):
            await invoke_callback(listener, items, name="pending listener")

    def _on_session_change(self, jwt: Optional[str]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if jwt:
            if loop is None:
                logger.warning("Signed in outside an event loop; call start() to resume polling")
                return
            logger.info("Signed in, resuming pending transaction polling")
            # Restart so the first fetch uses the new session
            self._cancel_polling()
            self._start_polling()
            return

        logger.info("Signed out, clearing pending transactions")
        self._cancel_polling()
        if loop is None:
            self._items = []
            self._error = None
            return
        task = loop.create_task(self._clear())
        self._background.add(task)
        task.add_done_callback(self._background.discard)


class PendingTransactionRegistry:
    """Entry point for listing a user's in-flight transactions."""

    def __init__(self, gateway: GatewayClient, session: Session):
        self.gateway = gateway
        self.session = session

    def list(
        self,
        poll_interval: Optional[float] = None,
        max_items: Optional[int] = None,
        on_change: Optional[Callback] = None,
    ) -> PendingList:
        """Start a self-refreshing pending list.

        Args:
            poll_interval: Seconds between refreshes (defaults to settings)
            max_items: Maximum items kept (defaults to settings)
            on_change: Called with the items after every refresh

        Returns:
            Running PendingList; call ``stop()`` or ``aclose()`` when done
        """
        settings = get_settings()
        pending = PendingList(
            self.gateway,
            self.session,
            poll_interval=settings.pending_poll_interval if poll_interval is None else poll_interval,
            max_items=settings.pending_max_items if max_items is None else max_items,
            on_change=on_change,
        )
        pending.start()
        return pending

    # ``list`` is shadowed by the method above inside this class body
    async def fetch(self, max_items: Optional[int] = None) -> List[TxStatus]:
        """Fetch the pending list once without polling."""
        if not self.session.is_authenticated:
            return []
        statuses = await self.gateway.list_pending()
        limit = get_settings().pending_max_items if max_items is None else max_items
        return statuses[:limit]
