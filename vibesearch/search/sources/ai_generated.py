"""LLM-generated business suggestions used to fill short result lists."""

import json
import logging
import random
import re
import uuid
from typing import Any, Dict, List, Mapping, Optional

import openai
from openai import OpenAI

from vibesearch.core.deadline import bounded_timeout
from vibesearch.core.errors import AIResponseParseError, ProviderError, ProviderTimeout
from vibesearch.core.models import Candidate, SearchRequest, SourceKind
from vibesearch.etl.transform import PLACEHOLDER_IMAGE_URL

logger = logging.getLogger(__name__)

PROVIDER = "openai_chat"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 25.0

_ARRAY_PATTERN = re.compile(r"\[.*\]", re.S)

SYSTEM_PROMPT = "You are a local business discovery assistant that answers with JSON only."


def build_prompt(query: str, count: int) -> str:
    return (
        f'Suggest exactly {count} local businesses that match the search "{query}". '
        "Match the tone and intent of the search and use realistic names and addresses.\n"
        'Respond with a JSON object of the form {"results": [...]} where every item has: '
        "id (string), name (string), shortDescription (2 sentences, 40-60 words), "
        "rating (object with integer thumbsUp 5-50, thumbsDown 0-10, sentimentScore 60-95), "
        "image (null), isOpen (boolean), hours (string), address (string), "
        "reviews (array with one object: text, author, thumbsUp), tags (empty array), "
        "similarity (number between 0 and 1 describing how well it matches the search)."
    )


def parse_ai_response(text: Optional[str]) -> List[Dict[str, Any]]:
    """Extract the list of suggestions from a model response.

    Accepts a JSON object holding ``results``, a bare JSON array, or prose
    wrapping an array.
    """
    if not text:
        raise AIResponseParseError("empty AI response")

    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict) and isinstance(parsed.get("results"), list):
        return [item for item in parsed["results"] if isinstance(item, dict)]
    if isinstance(parsed, list):
        return [item for item in parsed if isinstance(item, dict)]

    match = _ARRAY_PATTERN.search(text)
    if match:
        try:
            extracted = json.loads(match.group(0))
        except ValueError:
            extracted = None
        if isinstance(extracted, list):
            return [item for item in extracted if isinstance(item, dict)]

    raise AIResponseParseError("AI response contained neither a results object nor an array")


def complete_ai_business(item: Mapping[str, Any], rng: random.Random) -> Optional[Dict[str, Any]]:
    """Fill in the fields a suggestion needs for display; None when it has no name."""
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    rating = item.get("rating") if isinstance(item.get("rating"), dict) else {}
    return {
        "id": f"ai-{uuid.uuid4().hex}",
        "name": name.strip(),
        "shortDescription": item.get("shortDescription") or "A local business worth visiting.",
        "rating": {
            "thumbsUp": rating.get("thumbsUp", rng.randint(5, 50)),
            "thumbsDown": rating.get("thumbsDown", rng.randint(0, 10)),
            "sentimentScore": rating.get("sentimentScore", rng.randint(60, 95)),
        },
        "image": item.get("image") or PLACEHOLDER_IMAGE_URL,
        "isOpen": item.get("isOpen") if isinstance(item.get("isOpen"), bool) else True,
        "hours": item.get("hours") or "Hours not available",
        "address": item.get("address") or "Address not available",
        "reviews": item.get("reviews") if isinstance(item.get("reviews"), list) else [],
        "tags": item.get("tags") if isinstance(item.get("tags"), list) else [],
        "isPlatformBusiness": False,
        "isAIGenerated": True,
    }


def _similarity(item: Mapping[str, Any]) -> Optional[float]:
    value = item.get("similarity")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class AIGeneratedSource:
    name = "ai_generated"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        rng: Optional[random.Random] = None,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.rng = rng or random.Random()
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=1)

    def fetch(self, request: SearchRequest, count: int, timeout: Optional[float] = None) -> List[Candidate]:
        if count <= 0:
            return []

        effective_timeout = bounded_timeout(timeout, self.timeout, PROVIDER)
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(request.query, count)},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
                timeout=effective_timeout,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeout(PROVIDER, f"suggestion request timed out after {effective_timeout}s") from exc
        except openai.OpenAIError as exc:
            raise ProviderError(PROVIDER, f"suggestion request failed: {exc}") from exc

        items = parse_ai_response(response.choices[0].message.content)

        candidates: List[Candidate] = []
        for item in items[:count]:
            business = complete_ai_business(item, self.rng)
            if business is None:
                logger.warning("Skipping AI suggestion without a name: %s", item)
                continue
            candidates.append(
                Candidate(
                    identity=business["id"],
                    source_kind=SourceKind.AI_GENERATED,
                    raw_score=_similarity(item),
                    payload=business,
                )
            )
        logger.info("AI suggestions produced %d of %d requested for query=%s", len(candidates), count, request.query)
        return candidates
