from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from ballot.app import app
from ballot.auth.events import AuthEvent, AuthEventBus
from ballot.errors import RedirectRequired, StoreError, SubmissionError
from ballot.session.provider import SessionProvider
from ballot.storage.models import Profile, Rating
from ballot.submission.finalizer import finalize


def _login(c):
    c.post("/auth/login", json={"username": "user", "password": "user123"})


def _recorder():
    bus = AuthEventBus()
    seen = []
    bus.subscribe(lambda event, identity: seen.append(event))
    return bus, seen


# ── finalize ─────────────────────────────────────────────────────────────


def test_finalize_writes_fifteen_records(backend, voter, rated_selection):
    bus, seen = _recorder()
    records = finalize(backend, voter, bus)

    assert len(records) == 15
    saved = backend.list_submissions(voter.id)
    assert len(saved) == 15
    assert {r.restaurant_id for r in saved} == {c.id for c in rated_selection}
    first = next(r for r in saved if r.restaurant_id == rated_selection[0].id)
    assert first.restaurant_name == rated_selection[0].name
    assert (first.food_rating, first.service_rating, first.ambience_rating) == (5, 4, 3)
    assert first.is_complete is True

    assert backend.fetch_profile(voter.id).is_completed is True
    assert seen == [AuthEvent.USER_UPDATED, AuthEvent.SIGNED_OUT]


def test_finalize_with_fourteen_selected_writes_nothing(backend, voter, catalog):
    backend.upsert_selection(voter.id, catalog[:14])
    backend.update_ratings(voter.id, {c.id: Rating(food=1, service=1, ambience=1) for c in catalog[:14]})
    bus, seen = _recorder()

    with pytest.raises(RedirectRequired) as info:
        finalize(backend, voter, bus)

    assert info.value.redirect == "/selection"
    assert "15" in info.value.message
    assert backend.list_submissions(voter.id) == []
    assert backend.fetch_profile(voter.id).is_completed is False
    assert seen == []


def test_finalize_with_unrated_axis_redirects_to_rating(backend, voter, rated_selection):
    ratings = backend.fetch_selection_row(voter.id).restaurant_ratings
    ratings[rated_selection[7].id] = Rating(food=2, service=2, ambience=0)
    backend.update_ratings(voter.id, ratings)

    with pytest.raises(RedirectRequired) as info:
        finalize(backend, voter, AuthEventBus())
    assert info.value.redirect == "/rating"
    assert backend.list_submissions(voter.id) == []


def test_finalize_insert_failure_aborts(backend, voter, rated_selection):
    with patch.object(backend, "insert_submissions", side_effect=StoreError("duplicate key")):
        with pytest.raises(SubmissionError) as info:
            finalize(backend, voter, AuthEventBus())
    assert str(info.value).startswith("Error submitting ratings")
    assert backend.fetch_profile(voter.id).is_completed is False


def test_finalize_completion_failure_aborts(backend, voter, rated_selection):
    bus, seen = _recorder()
    with patch.object(backend, "mark_completed", side_effect=StoreError("rls denied")):
        with pytest.raises(SubmissionError) as info:
            finalize(backend, voter, bus)
    assert "completion status" in str(info.value)
    assert seen == []


def test_finalize_verification_failure(backend, voter, rated_selection):
    with patch.object(backend, "list_submissions", return_value=[]):
        with pytest.raises(SubmissionError) as info:
            finalize(backend, voter, AuthEventBus())
    assert str(info.value) == "Verification failed: not all ratings were saved."


def test_finalize_refuses_second_submission(backend, voter, rated_selection):
    finalize(backend, voter, AuthEventBus())
    with pytest.raises(RedirectRequired) as info:
        finalize(backend, voter, AuthEventBus())
    assert info.value.redirect == "/thank-you"
    assert len(backend.list_submissions(voter.id)) == 15


def test_retry_after_completion_failure_reuses_stored_records(backend, voter, rated_selection):
    with patch.object(backend, "mark_completed", side_effect=StoreError("rls denied")):
        with pytest.raises(SubmissionError):
            finalize(backend, voter, AuthEventBus())
    assert len(backend.list_submissions(voter.id)) == 15

    bus, seen = _recorder()
    with patch.object(backend, "insert_submissions", wraps=backend.insert_submissions) as spy:
        records = finalize(backend, voter, bus)

    assert spy.call_count == 0
    assert len(records) == 15
    assert len(backend.list_submissions(voter.id)) == 15
    assert backend.fetch_profile(voter.id).is_completed is True
    assert seen == [AuthEvent.USER_UPDATED, AuthEvent.SIGNED_OUT]


def test_mismatched_stored_records_are_not_extended(backend, voter, rated_selection, catalog):
    finalize(backend, voter, AuthEventBus())
    backend.upsert_selection(voter.id, catalog[15:30])
    backend.update_ratings(voter.id, {c.id: Rating(food=2, service=2, ambience=2) for c in catalog[15:30]})

    # profile flag lost, records kept
    with patch.object(backend, "fetch_profile", return_value=Profile(uid=voter.id)):
        with pytest.raises(SubmissionError) as info:
            finalize(backend, voter, AuthEventBus())
    assert "do not match" in str(info.value)
    assert len(backend.list_submissions(voter.id)) == 15


def test_completion_refreshes_cached_profile_even_if_verification_fails(backend, voter, rated_selection):
    bus = AuthEventBus()
    provider = SessionProvider(lambda: backend, bus)
    provider.start()
    assert provider.current(voter).profile.is_completed is False

    real_list = backend.list_submissions
    calls = []

    def empty_on_verify(uid):
        calls.append(uid)
        return real_list(uid) if len(calls) == 1 else []

    with patch.object(backend, "list_submissions", side_effect=empty_on_verify):
        with pytest.raises(SubmissionError):
            finalize(backend, voter, bus)

    assert provider.current(voter).profile.is_completed is True
    provider.stop()


# ── Endpoint ─────────────────────────────────────────────────────────────


def test_submit_endpoint_ends_session(backend, voter, rated_selection):
    c = TestClient(app)
    _login(c)
    resp = c.post("/final-ratings/submit")
    assert resp.status_code == 200
    assert resp.json() == {"status": "submitted", "submitted": 15, "redirect": "/thank-you"}
    assert c.get("/auth/me").status_code == 401
    assert backend.fetch_profile(voter.id).is_completed is True


def test_submit_endpoint_incomplete_selection(backend, voter, catalog):
    backend.upsert_selection(voter.id, catalog[:14])
    c = TestClient(app)
    _login(c)
    resp = c.post("/final-ratings/submit")
    assert resp.status_code == 409
    assert resp.json()["redirect"] == "/selection"
    assert backend.list_submissions(voter.id) == []
    # still signed in so the voter can fix the selection
    assert c.get("/auth/me").status_code == 200


def test_submit_endpoint_surfaces_write_error(backend, rated_selection):
    c = TestClient(app)
    _login(c)
    with patch.object(backend, "insert_submissions", side_effect=StoreError("Error submitting ratings: timeout")):
        resp = c.post("/final-ratings/submit")
    assert resp.status_code == 500
    assert "timeout" in resp.json()["detail"]
