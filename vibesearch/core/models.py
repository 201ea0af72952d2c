"""Core data models shared by the search pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from vibesearch.core.errors import ValidationError

UNKNOWN_DISTANCE = 999999
MAX_MATCH_COUNT = 20
DEFAULT_MATCH_COUNT = 10
DEFAULT_MATCH_THRESHOLD = 0.3
DEFAULT_RADIUS_MILES = 10.0


class SourceKind(str, Enum):
    EMBEDDING_MATCH = "embedding_match"
    EXTERNAL_PLACE = "external_place"
    AI_GENERATED = "ai_generated"


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> Optional["Coordinates"]:
        """Build coordinates from loosely typed values, or None when unusable."""
        lat = _safe_float(latitude)
        lng = _safe_float(longitude)
        if lat is None or lng is None:
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        return cls(latitude=lat, longitude=lng)

    def as_param(self) -> str:
        return f"{self.latitude},{self.longitude}"

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(slots=True)
class Candidate:
    """A search result in flight through the pipeline."""

    identity: str
    source_kind: SourceKind
    raw_score: Optional[float] = None
    coordinates: Optional[Coordinates] = None
    normalized_score: Optional[float] = None
    distance_miles: Optional[float] = None
    eta_minutes: Optional[int] = None
    score_fallback: bool = False
    distance_fallback: bool = False
    payload: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def has_known_distance(self) -> bool:
        return self.distance_miles is not None and self.distance_miles < UNKNOWN_DISTANCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.identity,
            "source": self.source_kind.value,
            "similarity": self.raw_score,
            "score": self.normalized_score,
            "latitude": self.coordinates.latitude if self.coordinates else None,
            "longitude": self.coordinates.longitude if self.coordinates else None,
            "distance": self.distance_miles,
            "duration": self.eta_minutes,
            "isFallbackScore": self.score_fallback,
            "isFallbackDistance": self.distance_fallback,
            "details": dict(self.payload),
        }


@dataclass(frozen=True)
class SearchRequest:
    query: str
    origin: Optional[Coordinates] = None
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    match_count: int = DEFAULT_MATCH_COUNT
    radius_miles: Optional[float] = None
    sort_by_distance: bool = False

    @property
    def radius_cutoff(self) -> Optional[float]:
        """Hard distance cutoff: the requested radius, else 10 miles for origin searches."""
        if self.radius_miles is not None:
            return self.radius_miles
        if self.origin is not None:
            return DEFAULT_RADIUS_MILES
        return None

    @classmethod
    def from_payload(cls, payload: Any) -> "SearchRequest":
        """Validate and clamp an HTTP search body."""
        if not isinstance(payload, Mapping):
            raise ValidationError("request body must be a JSON object")
        query = payload.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query is required and must be a non-empty string")

        latitude = payload.get("latitude")
        longitude = payload.get("longitude")
        origin = None
        if latitude is not None or longitude is not None:
            origin = Coordinates.parse(latitude, longitude)
            if origin is None:
                raise ValidationError("latitude and longitude must both be valid coordinates")

        threshold = _safe_float(payload.get("matchThreshold"))
        if threshold is None:
            threshold = DEFAULT_MATCH_THRESHOLD
        threshold = min(max(threshold, 0.0), 1.0)

        count = _safe_int(payload.get("matchCount"))
        if count is None:
            count = DEFAULT_MATCH_COUNT
        count = min(max(count, 1), MAX_MATCH_COUNT)

        radius = None
        if payload.get("radiusMiles") is not None:
            radius = _safe_float(payload.get("radiusMiles"))
            if radius is None or radius <= 0:
                raise ValidationError("radiusMiles must be a positive number")

        return cls(
            query=query.strip(),
            origin=origin,
            match_threshold=threshold,
            match_count=count,
            radius_miles=radius,
            sort_by_distance=payload.get("sortBy") == "distance",
        )


@dataclass(frozen=True, slots=True)
class DistanceDestination:
    identity: str
    coordinates: Coordinates


@dataclass(frozen=True, slots=True)
class DistanceResult:
    identity: str
    distance_miles: Optional[float] = None
    eta_minutes: Optional[int] = None
    distance_text: str = "N/A"
    duration_text: str = "N/A"
    status: str = "UNKNOWN"

    @property
    def ok(self) -> bool:
        return self.status == "OK" and self.distance_miles is not None


def _safe_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _safe_int(value: Any) -> Optional[int]:
    as_float = _safe_float(value)
    if as_float is None:
        return None
    return int(as_float)
