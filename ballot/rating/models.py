from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ..storage.models import Rating
from .workflow import RatedCandidate, RatingDraft


class StarRequest(BaseModel):
    axis: Literal["food", "service", "ambience"]
    stars: int


class RatingIn(BaseModel):
    food: int = Field(..., ge=1, le=5)
    service: int = Field(..., ge=1, le=5)
    ambience: int = Field(..., ge=1, le=5)


class RatingScreen(BaseModel):
    entries: list[RatedCandidate]
    rated: int
    max_selection: int
    ready_to_submit: bool


class DraftOut(BaseModel):
    draft: RatingDraft
    stars: dict[str, str]


class SavedRating(BaseModel):
    candidate_id: str
    rating: Rating
    rated: int
