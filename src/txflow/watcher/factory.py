"""Factory for creating status transports.

Supported transports:
- streaming: server-sent events, falling back to polling
- polling: fixed-interval status queries
"""

from typing import Optional

from txflow.config import Settings, get_settings
from txflow.gateway.client import GatewayClient
from txflow.watcher.base import StatusTransport
from txflow.watcher.broker import ConfirmationWatcher
from txflow.watcher.polling import PollingTransport
from txflow.watcher.streaming import StreamingTransport


def get_transport(
    gateway: GatewayClient,
    settings: Optional[Settings] = None,
    streaming: Optional[bool] = None,
) -> StatusTransport:
    """Get a status transport.

    Args:
        gateway: Gateway client the transport queries
        settings: Settings to read defaults from
        streaming: Override ``settings.use_streaming``

    Returns:
        StatusTransport instance
    """
    settings = settings or get_settings()
    polling = PollingTransport(gateway, interval=settings.poll_interval)

    use_streaming = settings.use_streaming if streaming is None else streaming
    if use_streaming:
        return StreamingTransport(gateway, fallback=polling)
    return polling


def create_watcher(
    gateway: GatewayClient,
    settings: Optional[Settings] = None,
    streaming: Optional[bool] = None,
) -> ConfirmationWatcher:
    """Create a confirmation watcher configured from settings."""
    settings = settings or get_settings()
    return ConfirmationWatcher(
        transport_factory=lambda: get_transport(gateway, settings, streaming),
        default_timeout=settings.watch_timeout,
        cleanup_delay=settings.watch_cleanup_delay,
    )
