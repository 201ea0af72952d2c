"""Score normalization and ordering for merged search candidates."""

import math
from typing import Iterable, List, Optional

from vibesearch.core.geo import haversine_miles
from vibesearch.core.models import Candidate, Coordinates, SourceKind, UNKNOWN_DISTANCE

DEFAULT_AI_SCORE = 0.7
PLACE_SCORE_FLOOR = 0.3


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


def normalize_score(candidate: Candidate) -> float:
    """Map a source-specific raw score onto [0, 1]."""
    raw = _finite(candidate.raw_score)
    if candidate.source_kind is SourceKind.EXTERNAL_PLACE:
        # A place returned by a targeted text search is at least marginally relevant.
        return _clamp(raw if raw is not None else PLACE_SCORE_FLOOR, PLACE_SCORE_FLOOR, 1.0)
    if candidate.source_kind is SourceKind.AI_GENERATED:
        return _clamp(raw if raw is not None else DEFAULT_AI_SCORE, 0.0, 1.0)
    return _clamp(raw if raw is not None else 0.0, 0.0, 1.0)


def rank(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Normalize every candidate and order by score, highest first.

    The sort is stable, so equal scores keep their input order. Distance is
    display-only and never used as a sort key here.
    """
    ranked = list(candidates)
    for candidate in ranked:
        candidate.normalized_score = normalize_score(candidate)
    ranked.sort(key=lambda candidate: candidate.normalized_score, reverse=True)
    return ranked


def within_radius(
    candidates: Iterable[Candidate],
    radius_miles: float,
    origin: Optional[Coordinates] = None,
) -> List[Candidate]:
    """Keep candidates inside the radius.

    Travel distance is used when known. Otherwise, given an origin, a located
    candidate falls back to its straight-line distance. Candidates with
    neither are excluded.
    """
    kept = []
    for candidate in candidates:
        if candidate.has_known_distance:
            distance = candidate.distance_miles
        elif origin is not None and candidate.coordinates is not None:
            distance = haversine_miles(origin, candidate.coordinates)
        else:
            continue
        if distance <= radius_miles:
            kept.append(candidate)
    return kept


def sort_by_distance(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Display ordering by distance; unknown distances sort last."""
    def key(candidate: Candidate) -> float:
        return candidate.distance_miles if candidate.has_known_distance else float(UNKNOWN_DISTANCE)

    return sorted(candidates, key=key)
