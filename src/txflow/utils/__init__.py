"""Utility modules."""

from txflow.utils.callbacks import Callback, invoke_callback

__all__ = ["Callback", "invoke_callback"]
