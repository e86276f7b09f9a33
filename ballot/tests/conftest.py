from __future__ import annotations

import pytest

from ballot.app import app
from ballot.storage import reset_backend, set_backend
from ballot.storage.memory import MemoryBackend
from ballot.storage.models import Candidate, Identity, Rating

VOTER = Identity(id="uid-user", email="user")


@pytest.fixture(autouse=True)
def backend():
    """Fresh in-memory backend for every test, installed as the app's backend."""
    fresh = MemoryBackend()
    set_backend(fresh)
    yield fresh
    reset_backend()


@pytest.fixture(autouse=True)
def session_provider(backend):
    """Subscribe the app's session provider for the test, as the lifespan does."""
    provider = app.state.session_provider
    provider.start()
    yield provider
    provider.stop()


@pytest.fixture
def voter() -> Identity:
    return VOTER


@pytest.fixture
def catalog(backend) -> list[Candidate]:
    return backend.list_candidates()


@pytest.fixture
def full_selection(backend, catalog, voter) -> list[Candidate]:
    picked = catalog[:15]
    backend.upsert_selection(voter.id, picked)
    return picked


@pytest.fixture
def rated_selection(backend, full_selection, voter) -> list[Candidate]:
    backend.update_ratings(
        voter.id,
        {c.id: Rating(food=5, service=4, ambience=3) for c in full_selection},
    )
    return full_selection
