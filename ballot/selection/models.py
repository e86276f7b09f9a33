from __future__ import annotations

from pydantic import BaseModel, Field

from ..storage.models import Candidate
from .workflow import ToggleResult


class ToggleRequest(BaseModel):
    candidate_id: str = Field(..., min_length=1)


class CandidateList(BaseModel):
    candidates: list[Candidate]
    total: int


class SelectionOut(BaseModel):
    selected: list[Candidate]
    count: int
    max_selection: int
    can_proceed: bool


class ToggleResponse(BaseModel):
    result: ToggleResult
    selection: SelectionOut
    notice: str | None = None
