"""Confirmation watching: shared subscriptions over streaming or polling transports."""

from txflow.watcher.base import ScriptedTransport, StatusTransport
from txflow.watcher.broker import ConfirmationWatcher, Watch
from txflow.watcher.factory import create_watcher, get_transport
from txflow.watcher.polling import PollingTransport
from txflow.watcher.streaming import StreamingTransport

__all__ = [
    "ConfirmationWatcher",
    "PollingTransport",
    "ScriptedTransport",
    "StatusTransport",
    "StreamingTransport",
    "Watch",
    "create_watcher",
    "get_transport",
]
