"""Live Google Places candidates around the caller's location."""

import logging
import random
from typing import List, Optional, Sequence

from vibesearch.core.deadline import bounded_timeout
from vibesearch.core.errors import ProviderError
from vibesearch.core.geo import haversine_miles, miles_to_meters
from vibesearch.core.models import DEFAULT_RADIUS_MILES, Candidate, SearchRequest
from vibesearch.etl.transform import describe_place, place_to_candidate
from vibesearch.search.embeddings import EmbeddingClient, cosine_similarity
from vibesearch.vendors import google_places

logger = logging.getLogger(__name__)

RADIUS_MILES = DEFAULT_RADIUS_MILES
MAX_RESULTS = 15
FALLBACK_SIMILARITY_RANGE = (0.6, 0.9)
PLACES_TIMEOUT = 10.0


class ExternalPlaceSource:
    name = "external_place"

    def __init__(
        self,
        api_key: str,
        embeddings: EmbeddingClient,
        radius_miles: float = RADIUS_MILES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.api_key = api_key
        self.embeddings = embeddings
        self.radius_miles = radius_miles
        self.rng = rng or random.Random()

    def fetch(
        self,
        request: SearchRequest,
        query_embedding: Optional[Sequence[float]] = None,
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        origin = request.origin
        if origin is None:
            return []

        combined_query = f"{request.query} near {origin.latitude},{origin.longitude}"
        payload = google_places.text_search(
            combined_query,
            self.api_key,
            location=origin,
            radius_meters=miles_to_meters(self.radius_miles),
            timeout=bounded_timeout(timeout, PLACES_TIMEOUT, google_places.PROVIDER),
        )

        survivors: List[Candidate] = []
        for result in payload.get("results", []):
            candidate = place_to_candidate(result, self.api_key)
            if candidate is None or candidate.coordinates is None:
                continue
            distance = haversine_miles(origin, candidate.coordinates)
            if distance > self.radius_miles:
                logger.debug("Dropping %s at %.1f miles (radius %.1f)", candidate.identity, distance, self.radius_miles)
                continue
            candidate.payload["straightLineMiles"] = round(distance, 1)
            survivors.append(candidate)

        survivors = survivors[:min(request.match_count, MAX_RESULTS)]
        if survivors:
            self._score(survivors, query_embedding, timeout)
        logger.info("Place search produced %d candidates for query=%s", len(survivors), request.query)
        return survivors

    def _score(
        self,
        candidates: List[Candidate],
        query_embedding: Optional[Sequence[float]],
        timeout: Optional[float],
    ) -> None:
        vectors = None
        if query_embedding is None:
            reason = "query embedding unavailable"
        else:
            try:
                vectors = self.embeddings.embed_many([describe_place(c) for c in candidates], timeout=timeout)
            except ProviderError as exc:
                reason = str(exc)

        if vectors is None:
            logger.warning(
                "Place scoring fell back to randomized similarity for %d candidates: %s", len(candidates), reason
            )
            low, high = FALLBACK_SIMILARITY_RANGE
            for candidate in candidates:
                candidate.raw_score = self.rng.uniform(low, high)
                candidate.score_fallback = True
            return

        for candidate, vector in zip(candidates, vectors):
            candidate.raw_score = cosine_similarity(query_embedding, vector)
