"""Coordinates one search request across every candidate source."""

import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from vibesearch.core.deadline import Deadline
from vibesearch.core.errors import DimensionMismatch, ProviderError, SearchFailedError
from vibesearch.core.models import Candidate, SearchRequest
from vibesearch.search.dedupe import dedupe
from vibesearch.search.distance import DistanceEnricher, mark_unknown
from vibesearch.search.embeddings import EmbeddingClient
from vibesearch.search.ranking import rank, sort_by_distance, within_radius
from vibesearch.search.sources.ai_generated import AIGeneratedSource
from vibesearch.search.sources.embedding_match import EmbeddingMatchSource
from vibesearch.search.sources.external_place import ExternalPlaceSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
NO_MATCHES_MESSAGE = "No matches found. Try different search terms."
SUGGESTED_QUERIES = ["cozy coffee shop", "romantic dinner", "energetic workout", "peaceful brunch", "trendy bar"]


class SearchState(str, Enum):
    IDLE = "idle"
    EMBEDDING = "embedding"
    SOURCE_FAN_OUT = "source_fan_out"
    DEDUP = "dedup"
    ENRICH = "enrich"
    RANK = "rank"
    DONE = "done"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class SearchOutcome:
    candidates: List[Candidate] = field(default_factory=list)
    states: List[SearchState] = field(default_factory=lambda: [SearchState.IDLE])
    failures: Dict[str, str] = field(default_factory=dict)
    source_counts: Dict[str, int] = field(default_factory=dict)
    message: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return SearchState.DEGRADED in self.states

    def enter(self, state: SearchState) -> None:
        self.states.append(state)

    def record_failure(self, source: str, exc: BaseException) -> None:
        self.failures[source] = str(exc) or exc.__class__.__name__
        if SearchState.DEGRADED not in self.states:
            self.states.append(SearchState.DEGRADED)


class SearchOrchestrator:
    """Embeds the query, fans out to sources, then merges, enriches and ranks.

    Only a failed query embedding with no other usable source fails the
    search. Every other problem is logged, recorded on the outcome and the
    search continues with whatever succeeded.
    """

    def __init__(
        self,
        embeddings: EmbeddingClient,
        embedding_source: Optional[EmbeddingMatchSource] = None,
        place_source: Optional[ExternalPlaceSource] = None,
        ai_source: Optional[AIGeneratedSource] = None,
        enricher: Optional[DistanceEnricher] = None,
        executor: Optional[Executor] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.embeddings = embeddings
        self.embedding_source = embedding_source
        self.place_source = place_source
        self.ai_source = ai_source
        self.enricher = enricher
        self.executor = executor or ThreadPoolExecutor(max_workers=4)
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    def search(self, request: SearchRequest) -> SearchOutcome:
        outcome = SearchOutcome()
        deadline = Deadline(self.timeout_seconds, self.clock)
        use_places = self.place_source is not None and request.origin is not None

        outcome.enter(SearchState.EMBEDDING)
        query_embedding = None
        try:
            query_embedding = self.embeddings.embed(request.query, timeout=deadline.remaining())
        except ProviderError as exc:
            if not use_places and self.ai_source is None:
                outcome.enter(SearchState.FAILED)
                logger.error("Query embedding failed with no other source available: %s", exc)
                raise SearchFailedError(exc.provider, f"query could not be embedded: {exc}") from exc
            logger.warning("Query embedding failed; skipping embedding match: %s", exc)
            outcome.record_failure("embedding", exc)

        outcome.enter(SearchState.SOURCE_FAN_OUT)
        candidates = self._fan_out(request, query_embedding, use_places, deadline, outcome)

        outcome.enter(SearchState.DEDUP)
        candidates = dedupe(candidates)

        missing = request.match_count - len(candidates)
        if self.ai_source is not None and missing > 0:
            if deadline.expired:
                logger.warning("Skipping AI suggestions; search deadline reached")
                outcome.record_failure(AIGeneratedSource.name, TimeoutError("search deadline reached"))
            else:
                suggestions = self._run_source(
                    AIGeneratedSource.name,
                    lambda: self.ai_source.fetch(request, missing, timeout=deadline.remaining()),
                    outcome,
                )
                candidates = dedupe(candidates + suggestions)

        if request.origin is not None and self.enricher is not None and candidates:
            outcome.enter(SearchState.ENRICH)
            self._enrich(candidates, request, deadline, outcome)

        cutoff = request.radius_cutoff
        if cutoff is not None:
            candidates = within_radius(candidates, cutoff, request.origin)

        outcome.enter(SearchState.RANK)
        ranked = rank(candidates)[:request.match_count]
        if request.sort_by_distance:
            ranked = sort_by_distance(ranked)

        outcome.candidates = ranked
        if not ranked:
            outcome.message = NO_MATCHES_MESSAGE
            outcome.suggestions = list(SUGGESTED_QUERIES)
        outcome.enter(SearchState.DONE)
        logger.info(
            "Search finished query=%s results=%d sources=%s degraded=%s",
            request.query,
            len(ranked),
            outcome.source_counts,
            outcome.degraded,
        )
        return outcome

    def _fan_out(
        self,
        request: SearchRequest,
        query_embedding: Optional[List[float]],
        use_places: bool,
        deadline: Deadline,
        outcome: SearchOutcome,
    ) -> List[Candidate]:
        jobs: Dict[str, Future] = {}
        if self.embedding_source is not None and query_embedding is not None:
            jobs[EmbeddingMatchSource.name] = self.executor.submit(
                self.embedding_source.fetch, request, query_embedding, deadline.remaining()
            )
        if use_places:
            jobs[ExternalPlaceSource.name] = self.executor.submit(
                self.place_source.fetch, request, query_embedding, deadline.remaining()
            )
        if not jobs:
            return []

        wait(list(jobs.values()), timeout=deadline.remaining())

        merged: List[Candidate] = []
        for name, future in jobs.items():
            if not future.done():
                future.cancel()
                logger.warning("Source %s did not finish before the search deadline", name)
                outcome.record_failure(name, TimeoutError("search deadline reached"))
                continue
            merged.extend(self._run_source(name, future.result, outcome))
        return merged

    def _run_source(self, name: str, call: Callable[[], List[Candidate]], outcome: SearchOutcome) -> List[Candidate]:
        try:
            found = call()
        except DimensionMismatch as exc:
            logger.exception("Vector dimension mismatch in source %s", name)
            outcome.record_failure(name, exc)
            return []
        except Exception as exc:  # noqa: BLE001
            logger.warning("Source %s failed: %s", name, exc)
            outcome.record_failure(name, exc)
            return []
        outcome.source_counts[name] = len(found)
        return found

    def _enrich(
        self,
        candidates: List[Candidate],
        request: SearchRequest,
        deadline: Deadline,
        outcome: SearchOutcome,
    ) -> None:
        if deadline.expired:
            logger.warning("Skipping distance enrichment; search deadline reached")
            outcome.record_failure("distance", TimeoutError("search deadline reached"))
            for candidate in candidates:
                mark_unknown(candidate)
            return
        try:
            self.enricher.enrich(
                candidates,
                request.origin,
                timeout=deadline.remaining(),
                on_failure=lambda exc: outcome.record_failure("distance", exc),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Distance enrichment crashed; using unknown distance for %d candidates", len(candidates))
            outcome.record_failure("distance", exc)
            for candidate in candidates:
                mark_unknown(candidate)
