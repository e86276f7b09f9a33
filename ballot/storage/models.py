from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    id: str = Field(..., min_length=1)
    email: str = ""


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str
    is_completed: bool = False


class Candidate(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    city: str


class Rating(BaseModel):
    """Food / service / ambience scores. ``0`` means the axis is not rated yet."""

    model_config = ConfigDict(extra="ignore")

    food: int = Field(default=0, ge=0, le=5)
    service: int = Field(default=0, ge=0, le=5)
    ambience: int = Field(default=0, ge=0, le=5)

    def lowest(self) -> int:
        return min(self.food, self.service, self.ambience)


class SelectionRow(BaseModel):
    """One row per identity: the selected candidates and their ratings."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    selected_national_restaurants: list[Candidate] = Field(default_factory=list)
    restaurant_ratings: dict[str, Rating] = Field(default_factory=dict)


class SubmissionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    user_id: str
    restaurant_id: str
    restaurant_name: str
    food_rating: int = Field(..., ge=1, le=5)
    service_rating: int = Field(..., ge=1, le=5)
    ambience_rating: int = Field(..., ge=1, le=5)
    is_complete: bool = True
