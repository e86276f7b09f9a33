from __future__ import annotations

import logging

from pydantic import BaseModel

from ..config import DEFAULT_CONFIG
from ..errors import RedirectRequired, StoreError
from ..storage.base import BallotBackend
from ..storage.models import Candidate, Identity, Rating
from .stars import AXES, RatingState, rating_state, render_stars, star_input

logger = logging.getLogger(__name__)

MAX_SELECTION = DEFAULT_CONFIG.max_selection


class RatingDraft(BaseModel):
    """Editable copy of one candidate's scores, open until saved."""

    candidate: Candidate
    rating: Rating


class RatedCandidate(BaseModel):
    candidate: Candidate
    rating: Rating
    state: RatingState
    stars: dict[str, str]


def check_consistency(
    selected: list[Candidate],
    ratings: dict[str, Rating],
    max_selection: int = MAX_SELECTION,
) -> str | None:
    """
    Return the route that can fix the voter's state, or ``None`` if the
    selection and ratings are ready for submission.
    """
    if len(selected) != max_selection:
        return "/selection"
    if len(ratings) != max_selection:
        return "/rating"
    for candidate in selected:
        if rating_state(ratings.get(candidate.id)) is not RatingState.COMPLETE:
            return "/rating"
    return None


def _sort_key(candidate: Candidate) -> tuple[str, str]:
    return candidate.city.casefold(), candidate.name.casefold()


class RatingWorkflow:
    def __init__(
        self,
        backend: BallotBackend,
        identity: Identity,
        max_selection: int = MAX_SELECTION,
    ) -> None:
        self.backend = backend
        self.identity = identity
        self.max_selection = max_selection
        self.selected: list[Candidate] = []
        self.ratings: dict[str, Rating] = {}

    def load(self) -> None:
        """Read selection and ratings together in one call."""
        try:
            row = self.backend.fetch_selection_row(self.identity.id)
        except StoreError as exc:
            logger.error("Error fetching selections: %s", exc)
            raise
        self.selected = sorted(row.selected_national_restaurants, key=_sort_key)
        self.ratings = dict(row.restaurant_ratings)

    def _reset_corrupt_ratings(self) -> None:
        try:
            self.backend.update_ratings(self.identity.id, {})
        except StoreError as exc:
            logger.error("Error clearing ratings: %s", exc)
        else:
            logger.info("Cleared extra ratings for user %s", self.identity.id)
        self.ratings = {}

    def enter(self) -> list[RatedCandidate]:
        """
        Open the rating screen.

        More than ``max_selection`` ratings means an earlier write went wrong;
        the mapping is wiped remotely and the voter sent to redo it.
        """
        self.load()
        if len(self.ratings) > self.max_selection:
            self._reset_corrupt_ratings()
            raise RedirectRequired("/rating")
        if len(self.selected) != self.max_selection:
            raise RedirectRequired("/selection")
        return self.entries()

    def review(self) -> list[RatedCandidate]:
        """Open the final-ratings screen: ``enter`` plus the completeness gate."""
        entries = self.enter()
        redirect = check_consistency(self.selected, self.ratings, self.max_selection)
        if redirect is not None:
            raise RedirectRequired(redirect)
        return entries

    def entries(self) -> list[RatedCandidate]:
        items: list[RatedCandidate] = []
        for candidate in self.selected:
            rating = self.ratings.get(candidate.id)
            shown = rating or Rating()
            items.append(RatedCandidate(
                candidate=candidate,
                rating=shown,
                state=rating_state(rating),
                stars={axis: render_stars(getattr(shown, axis)) for axis in AXES},
            ))
        return items

    def find_selected(self, candidate_id: str) -> Candidate:
        for candidate in self.selected:
            if candidate.id == candidate_id:
                return candidate
        raise LookupError(f"Restaurant {candidate_id} is not in your selection")

    def edit_rating(self, candidate_id: str) -> RatingDraft:
        if not self.selected:
            self.load()
        candidate = self.find_selected(candidate_id)
        current = self.ratings.get(candidate_id) or Rating()
        return RatingDraft(candidate=candidate, rating=current.model_copy())

    @staticmethod
    def set_stars(draft: RatingDraft, axis: str, stars: int) -> RatingDraft:
        if axis not in AXES:
            raise ValueError(f"Unknown rating axis {axis!r}")
        rating = draft.rating.model_copy(update={axis: star_input(stars)})
        return RatingDraft(candidate=draft.candidate, rating=rating)

    def save_rating(self, draft: RatingDraft) -> dict[str, Rating]:
        """Merge the draft into the latest mapping and write the whole mapping."""
        self.load()
        self.find_selected(draft.candidate.id)
        updated = {**self.ratings, draft.candidate.id: draft.rating}
        try:
            self.backend.update_ratings(self.identity.id, updated)
        except StoreError as exc:
            logger.error("Error updating ratings: %s", exc)
            raise
        self.ratings = updated
        return updated
