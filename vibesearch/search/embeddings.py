"""OpenAI embedding client and vector similarity helpers."""

import logging
import math
from typing import Any, List, Optional, Sequence

import openai
from openai import OpenAI

from vibesearch.core.deadline import bounded_timeout
from vibesearch.core.errors import DimensionMismatch, ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)

PROVIDER = "openai_embeddings"
DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_TIMEOUT = 20.0


class EmbeddingClient:
    """Turns query and item text into fixed-length vectors.

    `embed_many` sends up to `batch_size` texts per provider call and must be
    preferred over repeated `embed` calls whenever several texts are embedded
    for one request.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        batch_size: int = 256,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.batch_size = batch_size
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=1)

    def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        return self.embed_many([text], timeout=timeout)[0]

    def embed_many(self, texts: Sequence[str], timeout: Optional[float] = None) -> List[List[float]]:
        if not texts:
            return []
        cleaned = [text.strip() or " " for text in texts]
        vectors: List[List[float]] = []
        for start in range(0, len(cleaned), self.batch_size):
            batch = cleaned[start:start + self.batch_size]
            vectors.extend(self._create(batch, timeout))
        return vectors

    def _create(self, batch: List[str], timeout: Optional[float]) -> List[List[float]]:
        effective_timeout = bounded_timeout(timeout, self.timeout, PROVIDER)
        try:
            response = self._client.embeddings.create(
                model=self.model,
                input=batch,
                encoding_format="float",
                timeout=effective_timeout,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeout(PROVIDER, f"embedding request timed out after {effective_timeout}s") from exc
        except openai.OpenAIError as exc:
            raise ProviderError(PROVIDER, f"embedding request failed: {exc}") from exc

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(batch):
            raise ProviderError(PROVIDER, f"expected {len(batch)} embeddings, got {len(data)}")
        logger.debug("Embedded %d texts with %s", len(batch), self.model)
        return [list(item.embedding) for item in data]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise DimensionMismatch(f"cannot compare vectors of length {len(a)} and {len(b)}")
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)
