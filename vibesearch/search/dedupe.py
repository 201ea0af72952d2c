"""Cross-source deduplication of candidates."""

import logging
from typing import Dict, Iterable, List

from vibesearch.core.models import Candidate
from vibesearch.search.ranking import normalize_score

logger = logging.getLogger(__name__)


def dedupe(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Collapse candidates sharing an identity, keeping the best normalized score.

    The first candidate seen wins ties.
    """
    best: Dict[str, Candidate] = {}
    dropped = 0
    for candidate in candidates:
        existing = best.get(candidate.identity)
        if existing is None:
            best[candidate.identity] = candidate
            continue
        dropped += 1
        if normalize_score(candidate) > normalize_score(existing):
            best[candidate.identity] = candidate
    if dropped:
        logger.debug("Dropped %d duplicate candidates", dropped)
    return list(best.values())
