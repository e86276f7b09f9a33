from __future__ import annotations

from enum import Enum

from ..config import DEFAULT_CONFIG
from ..storage.models import Rating

AXES = ("food", "service", "ambience")


class RatingState(str, Enum):
    UNRATED = "unrated"
    PARTIAL = "partial"
    COMPLETE = "complete"


def star_input(stars: int) -> int:
    """Map a click on star ``1``..``5`` to the score it sets."""
    if isinstance(stars, bool) or not isinstance(stars, int):
        raise ValueError(f"Star value must be an integer, got {stars!r}")
    if not DEFAULT_CONFIG.score_min <= stars <= DEFAULT_CONFIG.score_max:
        raise ValueError(
            f"Star value must be between {DEFAULT_CONFIG.score_min} and {DEFAULT_CONFIG.score_max}"
        )
    return stars


def render_stars(score: int) -> str:
    """Read-only rendering: filled stars up to ``score``, hollow after."""
    filled = max(0, min(score, DEFAULT_CONFIG.score_max))
    return "★" * filled + "☆" * (DEFAULT_CONFIG.score_max - filled)


def rating_state(rating: Rating | None) -> RatingState:
    if rating is None:
        return RatingState.UNRATED
    scores = [getattr(rating, axis) for axis in AXES]
    if all(s >= DEFAULT_CONFIG.score_min for s in scores):
        return RatingState.COMPLETE
    if any(s >= DEFAULT_CONFIG.score_min for s in scores):
        return RatingState.PARTIAL
    return RatingState.UNRATED
