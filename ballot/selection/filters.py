from __future__ import annotations

import unicodedata

from ..storage.models import Candidate

ALL_CITIES = "All"


def normalize(text: str) -> str:
    """Strip diacritics and lowercase, so "Café" matches "cafe"."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def filter_candidates(
    candidates: list[Candidate],
    search_term: str = "",
    city: str | None = ALL_CITIES,
) -> list[Candidate]:
    """
    Return candidates matching both filters.

    ``city`` of ``"All"`` or empty skips city filtering. An empty search
    term matches every name.
    """
    needle = normalize(search_term.strip())
    wanted_city = normalize(city.strip()) if city and city != ALL_CITIES else None

    matches: list[Candidate] = []
    for candidate in candidates:
        if wanted_city is not None and normalize(candidate.city) != wanted_city:
            continue
        if needle and needle not in normalize(candidate.name):
            continue
        matches.append(candidate)
    return matches


def cities(candidates: list[Candidate]) -> list[str]:
    return sorted({c.city for c in candidates})
