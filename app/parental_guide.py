from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

ADULT_CERTIFICATIONS = frozenset({"R", "18", "NC-17", "A", "TV-MA", "X"})
TEEN_CERTIFICATIONS = frozenset({"PG-13", "12A", "12", "15", "TV-14", "UA"})
FAMILY_CERTIFICATIONS = frozenset({"G", "U", "TV-Y", "TV-G", "PG"})

CATEGORIES = ("violence", "nudity", "profanity", "frightening")


class Level(IntEnum):
    NONE = 0
    MILD = 1
    MODERATE = 2
    SEVERE = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class ContentAdvisory:
    violence: Level = Level.NONE
    nudity: Level = Level.NONE
    profanity: Level = Level.NONE
    frightening: Level = Level.NONE

    @property
    def is_family_friendly(self) -> bool:
        return all(getattr(self, name) is Level.NONE for name in CATEGORIES)

    def raise_to(self, category: str, level: Level) -> None:
        """Raise a category to ``level``; never lowers it."""
        setattr(self, category, max(getattr(self, category), level))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: getattr(self, name).label for name in CATEGORIES}
        data["is_family_friendly"] = self.is_family_friendly
        return data


def _genre_names(genres: Iterable[Any]) -> set[str]:
    names = set()
    for genre in genres or ():
        name = genre.get("name") if isinstance(genre, Mapping) else genre
        if name:
            names.add(str(name).strip().lower())
    return names


def classify(certification: Optional[str], genres: Sequence[Any] = ()) -> ContentAdvisory:
    """
    Infer parental-guide levels from an age certification and genre names.

    Certification sets a floor for profanity and violence, genre rules can only
    raise categories, and family/animation titles with a children's
    certification are reset to all-clear at the end.
    """
    cert = (certification or "").strip().upper()
    names = _genre_names(genres)
    adult = cert in ADULT_CERTIFICATIONS
    guide = ContentAdvisory()

    if adult:
        guide.raise_to("profanity", Level.MODERATE)
        guide.raise_to("violence", Level.MODERATE)
    elif cert in TEEN_CERTIFICATIONS:
        guide.raise_to("profanity", Level.MILD)
        guide.raise_to("violence", Level.MILD)

    if "horror" in names:
        guide.raise_to("frightening", Level.SEVERE)
        guide.raise_to("violence", Level.SEVERE if adult else Level.MODERATE)
    elif "thriller" in names:
        guide.raise_to("frightening", Level.MODERATE)
        guide.raise_to("violence", Level.MILD)

    if "action" in names or "war" in names:
        guide.raise_to("violence", Level.SEVERE if adult else Level.MODERATE)

    if "crime" in names:
        guide.raise_to("violence", Level.MILD)
        guide.raise_to("profanity", Level.MILD)

    if "romance" in names:
        guide.raise_to("nudity", Level.MODERATE if adult else Level.MILD)

    if "comedy" in names and "family" not in names:
        guide.raise_to("profanity", Level.MILD)

    # Overwrite, not a raise.
    if ("family" in names or "animation" in names) and cert in FAMILY_CERTIFICATIONS:
        guide = ContentAdvisory()

    return guide


def _pick_region(results: List[Mapping[str, Any]], regions: Sequence[str]) -> Optional[Mapping[str, Any]]:
    for region in regions:
        for entry in results:
            if entry.get("iso_3166_1") == region:
                return entry
    return results[0] if results else None


def certification_from_release_dates(
    payload: Mapping[str, Any] | None,
    regions: Sequence[str] = ("US", "IN", "GB"),
) -> Optional[str]:
    """Pick a movie certification from a TMDb ``/movie/{id}/release_dates`` payload."""
    results = list((payload or {}).get("results") or [])
    release = _pick_region(results, regions)
    if not release:
        return None
    for entry in release.get("release_dates") or []:
        if entry.get("certification"):
            return entry["certification"]
    return None


def certification_from_content_ratings(
    payload: Mapping[str, Any] | None,
    regions: Sequence[str] = ("US", "IN"),
) -> Optional[str]:
    """Pick a TV rating from a TMDb ``/tv/{id}/content_ratings`` payload."""
    results = list((payload or {}).get("results") or [])
    for region in regions:
        for entry in results:
            if entry.get("iso_3166_1") == region and entry.get("rating"):
                return entry["rating"]
    if results and results[0].get("rating"):
        return results[0]["rating"]
    return None
