"""Travel distance resolution and best-effort enrichment of candidates."""

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from vibesearch.core.deadline import bounded_timeout
from vibesearch.core.errors import ProviderError
from vibesearch.core.geo import METERS_PER_MILE
from vibesearch.core.models import (
    Candidate,
    Coordinates,
    DistanceDestination,
    DistanceResult,
    UNKNOWN_DISTANCE,
)
from vibesearch.vendors import distance_matrix

logger = logging.getLogger(__name__)


def _metric(section: Any) -> Optional[float]:
    if not isinstance(section, Mapping):
        return None
    value = section.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


def _parse_element(identity: str, element: Mapping[str, Any]) -> DistanceResult:
    status = element.get("status") or "UNKNOWN"
    if status != "OK":
        return DistanceResult(identity=identity, status=status)

    distance = element.get("distance")
    duration = element.get("duration")
    meters = _metric(distance)
    seconds = _metric(duration)
    if meters is None or seconds is None:
        return DistanceResult(identity=identity, status="MALFORMED")
    return DistanceResult(
        identity=identity,
        distance_miles=round(meters / METERS_PER_MILE, 1),
        eta_minutes=int(round(seconds / 60)),
        distance_text=distance.get("text") or "N/A",
        duration_text=duration.get("text") or "N/A",
        status=status,
    )


class GeoDistanceResolver:
    """Resolves driving distance and duration from one origin to many destinations."""

    def __init__(self, api_key: str, timeout: float = 10) -> None:
        self.api_key = api_key
        self.timeout = timeout

    def resolve(
        self,
        origin: Coordinates,
        destinations: Sequence[DistanceDestination],
        timeout: Optional[float] = None,
    ) -> List[DistanceResult]:
        """Return one result per destination, in order.

        Destinations are sent in as few requests as the provider allows.
        Raises a ProviderError if any request fails as a whole.
        """
        effective_timeout = bounded_timeout(timeout, self.timeout, distance_matrix.PROVIDER)
        results: List[DistanceResult] = []
        step = distance_matrix.MAX_DESTINATIONS_PER_REQUEST
        for start in range(0, len(destinations), step):
            chunk = destinations[start:start + step]
            elements = distance_matrix.distance_elements(
                origin,
                [dest.coordinates for dest in chunk],
                self.api_key,
                timeout=effective_timeout,
            )
            for dest, element in zip(chunk, elements):
                result = _parse_element(dest.identity, element if isinstance(element, dict) else {})
                if not result.ok:
                    logger.warning("Distance unavailable for %s: status=%s", dest.identity, result.status)
                results.append(result)
        return results


class DistanceEnricher:
    """Attaches travel distance to candidates without ever failing the search."""

    def __init__(self, resolver: GeoDistanceResolver) -> None:
        self.resolver = resolver

    def enrich(
        self,
        candidates: List[Candidate],
        origin: Coordinates,
        timeout: Optional[float] = None,
        on_failure: Optional[Callable[[ProviderError], None]] = None,
    ) -> List[Candidate]:
        """Attach distance and duration in place.

        A whole-call provider failure is passed to `on_failure` and every
        located candidate gets the unknown-distance sentinel.
        """
        located = [c for c in candidates if c.coordinates is not None]
        for candidate in candidates:
            if candidate.coordinates is None:
                mark_unknown(candidate)

        if not located:
            return candidates

        destinations = [DistanceDestination(identity=c.identity, coordinates=c.coordinates) for c in located]
        try:
            results = self.resolver.resolve(origin, destinations, timeout=timeout)
        except ProviderError as exc:
            logger.warning("Distance enrichment failed; using unknown distance for %d candidates: %s", len(located), exc)
            for candidate in located:
                mark_unknown(candidate)
            if on_failure is not None:
                on_failure(exc)
            return candidates

        by_identity: Dict[str, DistanceResult] = {result.identity: result for result in results}
        for candidate in located:
            result = by_identity.get(candidate.identity)
            if result is None or not result.ok:
                mark_unknown(candidate)
                continue
            candidate.distance_miles = result.distance_miles
            candidate.eta_minutes = result.eta_minutes
            candidate.distance_fallback = False
        return candidates


def mark_unknown(candidate: Candidate) -> None:
    candidate.distance_miles = UNKNOWN_DISTANCE
    candidate.eta_minutes = UNKNOWN_DISTANCE
    candidate.distance_fallback = True
