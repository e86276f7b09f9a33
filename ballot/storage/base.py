from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import StoreError
from .models import Candidate, Identity, Profile, Rating, SelectionRow, SubmissionRecord

M = TypeVar("M", bound=BaseModel)


def validate_row(model: type[M], data: Any, what: str) -> M:
    """Validate a raw backend row, turning schema drift into ``StoreError``."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise StoreError(f"Malformed {what}: {exc.error_count()} invalid field(s)") from exc


def candidate_from_catalog_row(row: dict[str, Any]) -> Candidate:
    """Map catalog column names onto the ``Candidate`` shape."""
    return validate_row(
        Candidate,
        {
            "id": str(row.get("restaurant_id", "")),
            "name": row.get("restaurant_name"),
            "city": row.get("city_name"),
        },
        "candidate",
    )


class BallotBackend(ABC):
    """
    Everything the voting flow needs from the hosted backend.

    Auth and the four tables (profiles, candidate catalog, selections,
    submissions) sit behind one object so the workflows can be driven by the
    in-memory implementation in tests and by Supabase in production.
    Implementations raise ``StoreError`` for any failed call.
    """

    # ── Auth ────────────────────────────────────────────────────────────

    @abstractmethod
    def sign_in(self, username: str, password: str) -> Identity | None:
        """Return the identity for valid credentials, ``None`` otherwise."""

    @abstractmethod
    def sign_out(self, identity: Identity) -> None:
        ...

    # ── Profiles ────────────────────────────────────────────────────────

    @abstractmethod
    def fetch_profile(self, uid: str) -> Profile:
        ...

    @abstractmethod
    def mark_completed(self, uid: str) -> None:
        ...

    # ── Candidate catalog ───────────────────────────────────────────────

    @abstractmethod
    def list_candidates(self) -> list[Candidate]:
        """Return the catalog without jury-created rows."""

    # ── Selections and ratings ──────────────────────────────────────────

    @abstractmethod
    def fetch_selection_row(self, uid: str) -> SelectionRow:
        """Return the identity's row, or an empty one if it has none yet."""

    @abstractmethod
    def upsert_selection(self, uid: str, candidates: list[Candidate]) -> None:
        ...

    @abstractmethod
    def update_ratings(self, uid: str, ratings: dict[str, Rating]) -> None:
        """Overwrite the whole ratings mapping."""

    # ── Submissions ─────────────────────────────────────────────────────

    @abstractmethod
    def insert_submissions(self, records: list[SubmissionRecord]) -> None:
        ...

    @abstractmethod
    def list_submissions(self, uid: str) -> list[SubmissionRecord]:
        ...
