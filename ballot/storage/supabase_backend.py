"""
Supabase implementation of ``BallotBackend``.

Table calls go through the postgrest query builder exposed by the SDK and
every failure (postgrest ``APIError``, auth errors, transport errors) is
re-raised as ``StoreError`` with the backend's message.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import httpx
from postgrest.exceptions import APIError
from supabase import AuthError, Client, create_client

from ..config import DEFAULT_CONFIG, BallotConfig
from ..errors import StoreError
from .base import BallotBackend, candidate_from_catalog_row, validate_row
from .models import Candidate, Identity, Profile, Rating, SelectionRow, SubmissionRecord

logger = logging.getLogger(__name__)


@contextmanager
def _backend_call(what: str) -> Iterator[None]:
    try:
        yield
    except (APIError, AuthError, httpx.HTTPError) as exc:
        message = getattr(exc, "message", None) or str(exc)
        logger.error("Error %s: %s", what, message)
        raise StoreError(f"Error {what}: {message}") from exc


class SupabaseBackend(BallotBackend):
    def __init__(
        self,
        config: BallotConfig = DEFAULT_CONFIG,
        client: Client | None = None,
    ) -> None:
        if client is None:
            if not config.supabase_url or not config.supabase_key:
                raise StoreError("Missing Supabase credentials (SUPABASE_URL / SUPABASE_KEY)")
            client = create_client(config.supabase_url.strip(), config.supabase_key.strip())
        self._client = client
        self._config = config

    # ── Auth ────────────────────────────────────────────────────────────

    def sign_in(self, username: str, password: str) -> Identity | None:
        try:
            response = self._client.auth.sign_in_with_password(
                {"email": username, "password": password}
            )
        except AuthError as exc:
            logger.warning("Sign-in rejected for %s: %s", username, exc)
            return None
        except httpx.HTTPError as exc:
            raise StoreError(f"Error signing in: {exc}") from exc

        user = response.user
        if user is None:
            return None
        return Identity(id=str(user.id), email=user.email or username)

    def sign_out(self, identity: Identity) -> None:
        with _backend_call("signing out"):
            self._client.auth.sign_out()

    # ── Profiles ────────────────────────────────────────────────────────

    def fetch_profile(self, uid: str) -> Profile:
        with _backend_call("fetching profile"):
            response = (
                self._client.table(self._config.profiles_table)
                .select("*")
                .eq("uid", uid)
                .single()
                .execute()
            )
        return validate_row(Profile, response.data, "profile")

    def mark_completed(self, uid: str) -> None:
        with _backend_call("updating completion status"):
            self._client.table(self._config.profiles_table).update(
                {"is_completed": True}
            ).eq("uid", uid).execute()

    # ── Candidate catalog ───────────────────────────────────────────────

    def list_candidates(self) -> list[Candidate]:
        with _backend_call("fetching restaurants"):
            response = (
                self._client.table(self._config.candidates_table)
                .select("*")
                .or_("created_by_jury.is.null,created_by_jury.eq.false")
                .execute()
            )
        return [candidate_from_catalog_row(row) for row in response.data or []]

    # ── Selections and ratings ──────────────────────────────────────────

    def fetch_selection_row(self, uid: str) -> SelectionRow:
        with _backend_call("fetching selections"):
            response = (
                self._client.table(self._config.selections_table)
                .select("user_id, selected_national_restaurants, restaurant_ratings")
                .eq("user_id", uid)
                .limit(1)
                .execute()
            )
        rows = response.data or []
        if not rows:
            return SelectionRow(user_id=uid)
        data = rows[0]
        # null columns read back as empty
        data = {
            "user_id": data.get("user_id") or uid,
            "selected_national_restaurants": data.get("selected_national_restaurants") or [],
            "restaurant_ratings": data.get("restaurant_ratings") or {},
        }
        return validate_row(SelectionRow, data, "selection row")

    def upsert_selection(self, uid: str, candidates: list[Candidate]) -> None:
        with _backend_call("saving selection"):
            self._client.table(self._config.selections_table).upsert(
                {
                    "user_id": uid,
                    "selected_national_restaurants": [c.model_dump() for c in candidates],
                },
                on_conflict="user_id",
            ).execute()

    def update_ratings(self, uid: str, ratings: dict[str, Rating]) -> None:
        with _backend_call("updating ratings"):
            self._client.table(self._config.selections_table).update(
                {"restaurant_ratings": {cid: r.model_dump() for cid, r in ratings.items()}}
            ).eq("user_id", uid).execute()

    # ── Submissions ─────────────────────────────────────────────────────

    def insert_submissions(self, records: list[SubmissionRecord]) -> None:
        with _backend_call("submitting ratings"):
            self._client.table(self._config.submissions_table).insert(
                [r.model_dump() for r in records]
            ).execute()

    def list_submissions(self, uid: str) -> list[SubmissionRecord]:
        with _backend_call("verifying submission"):
            response = (
                self._client.table(self._config.submissions_table)
                .select("*")
                .eq("user_id", uid)
                .execute()
            )
        return [validate_row(SubmissionRecord, row, "submission") for row in response.data or []]
