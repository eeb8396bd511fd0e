"""Explicit authentication session.

The gateway client, orchestrator and pending registry receive a ``Session``
instead of reading ambient auth state, so each can be tested in isolation.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Session:
    """Holds the JWT for the current user and notifies listeners on change."""

    def __init__(self, jwt: Optional[str] = None):
        self._jwt = jwt
        self._listeners: list[Callable[[Optional[str]], None]] = []

    @property
    def jwt(self) -> Optional[str]:
        return self._jwt

    @property
    def is_authenticated(self) -> bool:
        return bool(self._jwt)

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the current user, if any."""
        if not self._jwt:
            return {}
        return {"Authorization": f"Bearer {self._jwt}"}

    def login(self, jwt: str) -> None:
        self._set(jwt)

    def logout(self) -> None:
        self._set(None)

    def on_change(self, listener: Callable[[Optional[str]], None]) -> Callable[[], None]:
        """Register a listener called with the new JWT; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, jwt: Optional[str]) -> None:
        if jwt == self._jwt:
            return
        self._jwt = jwt
        logger.debug(f"Session {'authenticated' if jwt else 'cleared'}")
        for listener in list(self._listeners):
            try:
                listener(jwt)
            except Exception as e:
                logger.error(f"Session listener error: {e}")
