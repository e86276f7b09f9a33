from __future__ import annotations

import logging
import threading
from pathlib import Path

import pandas as pd

from ..auth.users import account_ids, authenticate
from ..config import DEFAULT_CONFIG
from ..errors import StoreError
from .base import BallotBackend, candidate_from_catalog_row
from .models import Candidate, Identity, Profile, Rating, SelectionRow, SubmissionRecord

logger = logging.getLogger(__name__)


def load_catalog(path: Path) -> list[Candidate]:
    """Read the catalog CSV, dropping rows created by the jury."""
    df = pd.read_csv(path, dtype={"restaurant_id": str})
    jury_only = df["created_by_jury"].astype(str).str.strip().str.lower().isin(["true", "1"])
    return [candidate_from_catalog_row(row) for row in df.loc[~jury_only].to_dict("records")]


class MemoryBackend(BallotBackend):
    """
    Process-local stand-in for the hosted backend.

    Tables are plain dicts guarded by one lock. Like the hosted store, the
    selection row is overwritten wholesale on every save, so concurrent
    edits for the same identity are last-write-wins.
    """

    def __init__(self, catalog_path: Path = DEFAULT_CONFIG.catalog_path) -> None:
        self._lock = threading.Lock()
        self._catalog_path = catalog_path
        self._catalog: list[Candidate] | None = None
        self._profiles: dict[str, Profile] = {uid: Profile(uid=uid) for uid in account_ids()}
        self._selections: dict[str, SelectionRow] = {}
        self._submissions: list[SubmissionRecord] = []

    def sign_in(self, username: str, password: str) -> Identity | None:
        return authenticate(username, password)

    def sign_out(self, identity: Identity) -> None:
        logger.info("Signed out %s", identity.id)

    def fetch_profile(self, uid: str) -> Profile:
        with self._lock:
            profile = self._profiles.get(uid)
        if profile is None:
            raise StoreError(f"No profile for user {uid}")
        return profile.model_copy()

    def mark_completed(self, uid: str) -> None:
        with self._lock:
            if uid not in self._profiles:
                raise StoreError(f"No profile for user {uid}")
            self._profiles[uid] = Profile(uid=uid, is_completed=True)

    def list_candidates(self) -> list[Candidate]:
        if self._catalog is None:
            self._catalog = load_catalog(self._catalog_path)
        return list(self._catalog)

    def fetch_selection_row(self, uid: str) -> SelectionRow:
        with self._lock:
            row = self._selections.get(uid)
            return row.model_copy(deep=True) if row else SelectionRow(user_id=uid)

    def upsert_selection(self, uid: str, candidates: list[Candidate]) -> None:
        with self._lock:
            row = self._selections.setdefault(uid, SelectionRow(user_id=uid))
            row.selected_national_restaurants = list(candidates)

    def update_ratings(self, uid: str, ratings: dict[str, Rating]) -> None:
        with self._lock:
            row = self._selections.get(uid)
            # update ... eq(user_id) matches nothing when the row is missing
            if row is not None:
                row.restaurant_ratings = {cid: r.model_copy() for cid, r in ratings.items()}

    def insert_submissions(self, records: list[SubmissionRecord]) -> None:
        with self._lock:
            self._submissions.extend(records)

    def list_submissions(self, uid: str) -> list[SubmissionRecord]:
        with self._lock:
            return [r for r in self._submissions if r.user_id == uid]
