from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from ..auth.events import AuthEvent, AuthEventBus, Subscription
from ..errors import StoreError
from ..storage.base import BallotBackend
from ..storage.models import Identity, Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    identity: Identity | None = None
    profile: Profile | None = None


class SessionProvider:
    """
    Shares ``{identity, profile}`` with the rest of the app.

    The profile is fetched once per identity and cached. Any auth event for
    that identity drops the cached copy; sign-in and token refresh fetch it
    again straight away. A failed fetch is logged and leaves the profile
    ``None`` until the next auth event.

    ``backend`` is a getter so the provider follows backend swaps.
    """

    def __init__(self, backend: Callable[[], BallotBackend], events: AuthEventBus) -> None:
        self._backend = backend
        self._events = events
        self._lock = threading.Lock()
        self._profiles: dict[str, Profile | None] = {}
        self._subscription: Subscription | None = None

    @property
    def started(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self) -> None:
        if not self.started:
            self._subscription = self._events.subscribe(self._on_auth_event)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        with self._lock:
            self._profiles.clear()

    def current(self, identity: Identity | None) -> SessionContext:
        if identity is None:
            return SessionContext()
        with self._lock:
            if identity.id in self._profiles:
                return SessionContext(identity, self._profiles[identity.id])
        return SessionContext(identity, self._load(identity))

    def _load(self, identity: Identity) -> Profile | None:
        try:
            profile: Profile | None = self._backend().fetch_profile(identity.id)
        except StoreError as exc:
            logger.error("Error fetching profile for %s: %s", identity.id, exc)
            profile = None
        with self._lock:
            self._profiles[identity.id] = profile
        return profile

    def _on_auth_event(self, event: AuthEvent, identity: Identity) -> None:
        with self._lock:
            self._profiles.pop(identity.id, None)
        if event is not AuthEvent.SIGNED_OUT:
            self._load(identity)
