from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from ..storage.models import Identity

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Identity], None]


class Subscription:
    """Handle returned by ``AuthEventBus.subscribe``."""

    def __init__(self, bus: AuthEventBus, listener: AuthListener) -> None:
        self._bus = bus
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self._listener)
            self.active = False


class AuthEventBus:
    """Delivers auth-state changes to subscribers in registration order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: AuthListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def emit(self, event: AuthEvent, identity: Identity) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event, identity)
            except Exception:
                logger.warning("Auth listener failed on %s", event.value, exc_info=True)


auth_events = AuthEventBus()
