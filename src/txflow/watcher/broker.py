"""Confirmation watcher: a reference-counted broker keyed by transaction hash.

Every ``watch()`` call on the same hash shares one transport task. Updates
are fanned out to each observer in lifecycle order:

- pending / confirmed: ``on_update``
- updated: ``on_update`` then ``on_complete`` (success)
- failed / expired: ``on_update`` then ``on_complete`` (``status.is_failed``)

``on_complete`` fires exactly once per observer, whether the terminal
status came from the gateway or from the observer's own timeout.
"""

import asyncio
import logging
from typing import Callable, Optional

from txflow.gateway.contracts import TxState, TxStatus
from txflow.utils.callbacks import Callback, invoke_callback
from txflow.watcher.base import StatusTransport

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "Timed out waiting for confirmation"


def _is_newer(current: Optional[TxStatus], incoming: TxStatus) -> bool:
    """Whether ``incoming`` moves the lifecycle forward from ``current``."""
    if current is None:
        return True
    if current.is_terminal:
        return False
    if incoming.rank < current.rank:
        return False
    return incoming.state != current.state


class Watch:
    """One observer's handle on a watched transaction.

    Created by ``ConfirmationWatcher.watch``; not constructed directly.
    """

    def __init__(
        self,
        watcher: "ConfirmationWatcher",
        tx_hash: str,
        on_update: Optional[Callback],
        on_complete: Optional[Callback],
    ):
        self._watcher = watcher
        self.tx_hash = tx_hash
        self._on_update = on_update
        self._on_complete = on_complete

        self._status: Optional[TxStatus] = None
        self._completed = False
        self._cancelled = False
        self._timed_out = False
        self._lock = asyncio.Lock()
        self._done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._timeout_handle: Optional[asyncio.TimerHandle] = None

    @property
    def status(self) -> Optional[TxStatus]:
        return self._status

    @property
    def is_success(self) -> bool:
        return self._status is not None and self._status.is_success

    @property
    def is_failed(self) -> bool:
        return self._status is not None and self._status.is_failed

    @property
    def is_terminal(self) -> bool:
        return self._status is not None and self._status.is_terminal

    @property
    def timed_out(self) -> bool:
        """Whether the terminal status was this observer's local timeout."""
        return self._timed_out

    @property
    def is_active(self) -> bool:
        return not (self._completed or self._cancelled)

    def cancel(self) -> None:
        """Stop observing. Safe to call repeatedly or after completion."""
        if not self.is_active:
            return
        self._cancelled = True
        logger.debug(f"Watch on {self.tx_hash} cancelled")
        self._finish()

    async def wait(self) -> Optional[TxStatus]:
        """Wait until this observer completes or is cancelled.

        Returns:
            The final status (None if cancelled before any status arrived)
        """
        return await asyncio.shield(self._done)

    def _start_timer(self, timeout: Optional[float]) -> None:
        if not timeout or timeout <= 0:
            return
        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(timeout, self._on_timeout)

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if not self.is_active:
            return

        last = self._status
        expired = TxStatus(
            tx_hash=self.tx_hash,
            tx_type=last.tx_type if last else "",
            state=TxState.EXPIRED,
            last_error=TIMEOUT_ERROR,
            retry_count=last.retry_count if last else 0,
        )
        logger.warning(f"Watch on {self.tx_hash} timed out")
        self._watcher._spawn(self._deliver(expired, timed_out=True))

    async def _deliver(self, status: TxStatus, timed_out: bool = False) -> None:
        async with self._lock:
            if not self.is_active or not _is_newer(self._status, status):
                return

            self._status = status
            terminal = status.is_terminal
            if terminal:
                self._completed = True
                self._timed_out = timed_out

            await invoke_callback(self._on_update, status, name="on_update")

            if terminal:
                await invoke_callback(self._on_complete, status, name="on_complete")
                self._finish()

    def _finish(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        if not self._done.done():
            self._done.set_result(self._status)
        self._watcher._release(self)


class _Subscription:
    """Shared state for one watched hash."""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        self.status: Optional[TxStatus] = None
        self.watches: list[Watch] = []
        self.task: Optional[asyncio.Task] = None
        self.cleanup_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not None and self.status.is_terminal


class ConfirmationWatcher:
    """Watches transaction hashes until the gateway reports a terminal state.

    Must be used from within a running event loop.
    """

    def __init__(
        self,
        transport_factory: Callable[[], StatusTransport],
        default_timeout: Optional[float] = 900.0,
        cleanup_delay: float = 60.0,
    ):
        """Initialize the watcher.

        Args:
            transport_factory: Creates the transport for each new subscription
            default_timeout: Seconds each observer waits for a terminal status
                (None disables the timeout)
            cleanup_delay: Seconds a finished subscription is kept so late
                observers receive its terminal status
        """
        self.transport_factory = transport_factory
        self.default_timeout = default_timeout
        self.cleanup_delay = cleanup_delay

        self._subscriptions: dict[str, _Subscription] = {}
        self._background: set[asyncio.Task] = set()

    def watch(
        self,
        tx_hash: str,
        on_update: Optional[Callback] = None,
        on_complete: Optional[Callback] = None,
        timeout: Optional[float] = None,
    ) -> Watch:
        """Observe a transaction hash.

        Args:
            tx_hash: Hash returned on submission
            on_update: Called with every accepted status
            on_complete: Called once with the terminal status
            timeout: Seconds before a local ``expired`` status is delivered
                to this observer (defaults to ``default_timeout``)

        Returns:
            Handle exposing the latest status and ``cancel()``
        """
        watch = Watch(self, tx_hash, on_update, on_complete)

        subscription = self._subscriptions.get(tx_hash)
        if subscription is None:
            subscription = _Subscription(tx_hash)
            self._subscriptions[tx_hash] = subscription

        subscription.watches.append(watch)

        if subscription.status is not None:
            # Replay what is already known
            self._spawn(watch._deliver(subscription.status))

        if not subscription.is_terminal:
            watch._start_timer(self.default_timeout if timeout is None else timeout)
            if subscription.task is None or subscription.task.done():
                self._start(subscription)

        logger.debug(f"Watching {tx_hash} ({len(subscription.watches)} observers)")
        return watch

    def get_status(self, tx_hash: str) -> Optional[TxStatus]:
        """Latest known status for a hash, if it is being watched or cached."""
        subscription = self._subscriptions.get(tx_hash)
        return subscription.status if subscription else None

    def active_hashes(self) -> list[str]:
        """Hashes with a live transport."""
        return [
            tx_hash
            for tx_hash, subscription in self._subscriptions.items()
            if subscription.task is not None and not subscription.task.done()
        ]

    def clear_all(self) -> None:
        """Cancel every observer and transport (e.g. on logout)."""
        for subscription in list(self._subscriptions.values()):
            for watch in list(subscription.watches):
                watch.cancel()
            self._stop(subscription)
        self._subscriptions.clear()
        logger.info("Cleared all transaction watches")

    async def aclose(self) -> None:
        self.clear_all()
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ======================
    # Internals
    # ======================

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _start(self, subscription: _Subscription) -> None:
        transport = self.transport_factory()
        logger.info(f"Starting {transport.name} transport for {subscription.tx_hash}")
        subscription.task = self._spawn(self._run(subscription, transport))

    async def _run(self, subscription: _Subscription, transport: StatusTransport) -> None:
        async def emit(status: TxStatus) -> bool:
            await self._apply(subscription, status)
            return subscription.is_terminal

        try:
            await transport.run(subscription.tx_hash, emit)
        except asyncio.CancelledError:
            logger.debug(f"Transport for {subscription.tx_hash} cancelled")
            raise
        except Exception as e:
            logger.error(f"Transport for {subscription.tx_hash} failed: {e}")

    async def _apply(self, subscription: _Subscription, status: TxStatus) -> None:
        if status.tx_hash and status.tx_hash != subscription.tx_hash:
            logger.warning(
                f"Ignoring status for {status.tx_hash} on subscription {subscription.tx_hash}"
            )
            return

        if not _is_newer(subscription.status, status):
            logger.debug(f"Dropping stale {status.state.value} for {subscription.tx_hash}")
            return

        subscription.status = status
        logger.info(f"Transaction {subscription.tx_hash} is {status.state.value}")

        for watch in list(subscription.watches):
            await watch._deliver(status)

        if status.is_terminal:
            self._schedule_cleanup(subscription)

    def _release(self, watch: Watch) -> None:
        subscription = self._subscriptions.get(watch.tx_hash)
        if subscription is None or watch not in subscription.watches:
            return

        subscription.watches.remove(watch)
        if subscription.watches:
            return
        if subscription.is_terminal:
            self._schedule_cleanup(subscription)
            return

        # Last observer left before a terminal state
        self._stop(subscription)
        self._subscriptions.pop(subscription.tx_hash, None)
        logger.debug(f"Stopped watching {subscription.tx_hash}")

    def _stop(self, subscription: _Subscription) -> None:
        task = subscription.task
        if task is not None and not task.done():
            task.cancel()
        if subscription.cleanup_handle is not None:
            subscription.cleanup_handle.cancel()
            subscription.cleanup_handle = None

    def _schedule_cleanup(self, subscription: _Subscription) -> None:
        if subscription.cleanup_handle is not None:
            return
        loop = asyncio.get_running_loop()
        subscription.cleanup_handle = loop.call_later(
            self.cleanup_delay, self._evict, subscription.tx_hash
        )

    def _evict(self, tx_hash: str) -> None:
        subscription = self._subscriptions.get(tx_hash)
        if subscription is None:
            return
        subscription.cleanup_handle = None
        if subscription.watches:
            # Rescheduled when the remaining observers release
            return
        self._subscriptions.pop(tx_hash, None)
        logger.debug(f"Evicted finished subscription for {tx_hash}")
