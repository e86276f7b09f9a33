from __future__ import annotations

from unittest.mock import patch

from fastapi.testclient import TestClient

from ballot.app import app
from ballot.auth.events import AuthEvent, AuthEventBus, auth_events
from ballot.errors import StoreError
from ballot.session.provider import SessionContext, SessionProvider


# ── Auth event bus ───────────────────────────────────────────────────────


def test_subscribe_and_unsubscribe(voter):
    bus = AuthEventBus()
    seen = []
    sub = bus.subscribe(lambda event, identity: seen.append((event, identity.id)))
    bus.emit(AuthEvent.SIGNED_IN, voter)
    sub.unsubscribe()
    bus.emit(AuthEvent.SIGNED_OUT, voter)

    assert seen == [(AuthEvent.SIGNED_IN, "uid-user")]
    assert bus.listener_count() == 0
    assert sub.active is False


def test_failing_listener_does_not_block_others(voter):
    bus = AuthEventBus()
    seen = []

    def broken(event, identity):
        raise RuntimeError("listener bug")

    bus.subscribe(broken)
    bus.subscribe(lambda event, identity: seen.append(event))
    bus.emit(AuthEvent.TOKEN_REFRESHED, voter)
    assert seen == [AuthEvent.TOKEN_REFRESHED]


# ── Session provider ─────────────────────────────────────────────────────


def test_no_identity_gives_empty_context(backend):
    provider = SessionProvider(lambda: backend, AuthEventBus())
    assert provider.current(None) == SessionContext()


def test_profile_is_fetched_once_and_cached(backend, voter):
    provider = SessionProvider(lambda: backend, AuthEventBus())
    with patch.object(backend, "fetch_profile", wraps=backend.fetch_profile) as spy:
        first = provider.current(voter)
        second = provider.current(voter)
    assert first.profile.uid == "uid-user"
    assert second.profile == first.profile
    assert spy.call_count == 1


def test_profile_fetch_failure_leaves_profile_none(backend, voter):
    provider = SessionProvider(lambda: backend, AuthEventBus())
    with patch.object(backend, "fetch_profile", side_effect=StoreError("timeout")):
        ctx = provider.current(voter)
    assert ctx.identity == voter
    assert ctx.profile is None


def test_auth_events_refetch_profile(backend, voter):
    bus = AuthEventBus()
    provider = SessionProvider(lambda: backend, bus)
    provider.start()
    assert provider.current(voter).profile.is_completed is False

    backend.mark_completed(voter.id)
    bus.emit(AuthEvent.TOKEN_REFRESHED, voter)
    assert provider.current(voter).profile.is_completed is True
    provider.stop()


def test_signed_out_drops_cached_profile(backend, voter):
    bus = AuthEventBus()
    provider = SessionProvider(lambda: backend, bus)
    provider.start()
    provider.current(voter)
    with patch.object(backend, "fetch_profile", wraps=backend.fetch_profile) as spy:
        bus.emit(AuthEvent.SIGNED_OUT, voter)
        assert spy.call_count == 0
        provider.current(voter)
        assert spy.call_count == 1
    provider.stop()


def test_stop_unsubscribes(backend):
    bus = AuthEventBus()
    provider = SessionProvider(lambda: backend, bus)
    provider.start()
    provider.start()
    assert bus.listener_count() == 1
    provider.stop()
    assert bus.listener_count() == 0
    assert provider.started is False


def test_app_lifespan_subscribes_provider(session_provider):
    session_provider.stop()
    with TestClient(app):
        assert session_provider.started is True
        assert auth_events.listener_count() >= 1
    assert session_provider.started is False
