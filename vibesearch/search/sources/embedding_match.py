"""Vector-similarity candidates from stored offering embeddings."""

import logging
from types import ModuleType
from typing import List, Optional, Sequence

import psycopg2

from vibesearch.core import db
from vibesearch.core.deadline import Deadline
from vibesearch.core.errors import ProviderError, ProviderTimeout
from vibesearch.core.models import MAX_MATCH_COUNT, Candidate, SearchRequest
from vibesearch.etl.transform import offering_to_candidate

logger = logging.getLogger(__name__)
PROVIDER = "vector_store"


class EmbeddingMatchSource:
    name = "embedding_match"

    def __init__(self, store: ModuleType = db) -> None:
        self.store = store

    def fetch(
        self,
        request: SearchRequest,
        query_embedding: Sequence[float],
        timeout: Optional[float] = None,
    ) -> List[Candidate]:
        """Match, then hydrate offerings and reviews in two batched queries.

        ``timeout`` bounds the three queries together; each one runs with a
        statement timeout set to whatever is left.
        """
        deadline = Deadline(timeout) if timeout is not None else None
        match_count = min(request.match_count, MAX_MATCH_COUNT)
        try:
            hits = self.store.match_offerings(
                query_embedding, request.match_threshold, match_count, timeout=_budget(deadline)
            )
            if not hits:
                logger.info("No embedding matches for query=%s", request.query)
                return []

            offering_ids = [str(hit["id"]) for hit in hits]
            offerings = {
                str(row["id"]): row for row in self.store.fetch_offerings(offering_ids, timeout=_budget(deadline))
            }
            business_ids = sorted({str(hit.get("business_id") or hit["id"]) for hit in hits})
            reviews = self.store.fetch_reviews(business_ids, timeout=_budget(deadline))
        except psycopg2.extensions.QueryCanceledError as exc:
            raise ProviderTimeout(PROVIDER, f"vector search exceeded its time budget: {exc}") from exc
        except psycopg2.Error as exc:
            raise ProviderError(PROVIDER, f"vector search failed: {exc}") from exc

        candidates = []
        for hit in hits:
            business_id = str(hit.get("business_id") or hit["id"])
            offering: Optional[dict] = offerings.get(str(hit["id"]))
            candidates.append(offering_to_candidate(hit, offering, reviews.get(business_id, [])))
        logger.info("Embedding match produced %d candidates for query=%s", len(candidates), request.query)
        return candidates


def _budget(deadline: Optional[Deadline]) -> Optional[float]:
    if deadline is None:
        return None
    if deadline.expired:
        raise ProviderTimeout(PROVIDER, "no time left before the search deadline")
    return deadline.remaining()
