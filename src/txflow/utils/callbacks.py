"""Callback helpers shared by the orchestrator, watcher and pending registry.

Observers may be plain functions or coroutine functions. Their failures
are logged and never propagate into the lifecycle that invoked them.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

Callback = Callable[..., Union[None, Awaitable[None]]]


async def invoke_callback(
    callback: Optional[Callback],
    *args: Any,
    name: str = "callback",
) -> None:
    """Call a sync or async callback, logging instead of raising on failure."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Error in {name}: {e}", exc_info=True)
