from __future__ import annotations

import logging
from enum import Enum

from ..config import DEFAULT_CONFIG
from ..errors import RedirectRequired, SelectionNotReady, StoreError
from ..storage.base import BallotBackend
from ..storage.models import Candidate, Identity
from .filters import ALL_CITIES, cities, filter_candidates

logger = logging.getLogger(__name__)

MAX_SELECTION = DEFAULT_CONFIG.max_selection


class ToggleResult(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    COMPLETED = "completed"
    AT_CAPACITY = "at_capacity"


class SelectionSet:
    """Order-irrelevant set of candidates, never larger than ``max_selection``."""

    def __init__(self, items: list[Candidate] | None = None, max_selection: int = MAX_SELECTION) -> None:
        self.max_selection = max_selection
        self._items: list[Candidate] = []
        for item in items or []:
            if not self.contains(item.id) and len(self._items) < max_selection:
                self._items.append(item)

    @property
    def items(self) -> list[Candidate]:
        return list(self._items)

    @property
    def size(self) -> int:
        return len(self._items)

    def contains(self, candidate_id: str) -> bool:
        return any(c.id == candidate_id for c in self._items)

    def is_complete(self) -> bool:
        return self.size == self.max_selection

    def toggle(self, candidate: Candidate) -> ToggleResult:
        if self.contains(candidate.id):
            self.remove(candidate.id)
            return ToggleResult.REMOVED
        if self.size >= self.max_selection:
            return ToggleResult.AT_CAPACITY
        self._items.append(candidate)
        return ToggleResult.COMPLETED if self.is_complete() else ToggleResult.ADDED

    def remove(self, candidate_id: str) -> None:
        self._items = [c for c in self._items if c.id != candidate_id]


class SelectionWorkflow:
    """
    Selection screen logic for one voter.

    ``load_candidates`` must run before ``load_selection``; every mutation
    is followed by a full upsert of the set (last write wins).
    """

    def __init__(
        self,
        backend: BallotBackend,
        identity: Identity,
        max_selection: int = MAX_SELECTION,
    ) -> None:
        self.backend = backend
        self.identity = identity
        self.max_selection = max_selection
        self.candidates: list[Candidate] = []
        self.candidates_loaded = False
        self.selection = SelectionSet(max_selection=max_selection)

    def load_candidates(self) -> list[Candidate]:
        try:
            self.candidates = self.backend.list_candidates()
        except StoreError as exc:
            logger.error("Error fetching restaurants: %s", exc)
            raise
        self.candidates_loaded = True
        return self.candidates

    def load_selection(self) -> SelectionSet:
        if not self.candidates_loaded:
            raise SelectionNotReady("Restaurants must be loaded before the saved selection")
        try:
            row = self.backend.fetch_selection_row(self.identity.id)
        except StoreError as exc:
            logger.error("Error loading selection: %s", exc)
            raise
        self.selection = SelectionSet(row.selected_national_restaurants, self.max_selection)
        return self.selection

    def open(self) -> SelectionWorkflow:
        """Load candidates, then the saved selection."""
        self.load_candidates()
        self.load_selection()
        return self

    def find(self, candidate_id: str) -> Candidate:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise LookupError(f"Unknown restaurant {candidate_id}")

    def search(self, search_term: str = "", city: str | None = ALL_CITIES) -> list[Candidate]:
        return filter_candidates(self.candidates, search_term, city)

    def cities(self) -> list[str]:
        return cities(self.candidates)

    def toggle(self, candidate_id: str) -> ToggleResult:
        result = self.selection.toggle(self.find(candidate_id))
        if result is ToggleResult.AT_CAPACITY:
            return result
        self.persist()
        if result is ToggleResult.COMPLETED:
            logger.info("Selection complete for %s", self.identity.id)
        return result

    def remove(self, candidate_id: str) -> None:
        self.selection.remove(candidate_id)
        self.persist()

    def persist(self) -> None:
        try:
            self.backend.upsert_selection(self.identity.id, self.selection.items)
        except StoreError as exc:
            logger.error("Error saving selection: %s", exc)
            raise

    def can_proceed(self) -> bool:
        return self.selection.is_complete()

    def proceed(self) -> str:
        if not self.can_proceed():
            raise RedirectRequired(
                "/selection",
                f"Choose exactly {self.max_selection} restaurants before rating them.",
            )
        return "/rating"
