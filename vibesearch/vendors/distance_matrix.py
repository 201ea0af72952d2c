"""Client utilities for the Google Distance Matrix API."""

import logging
from typing import Any, Dict, List, Sequence

import requests

from vibesearch.core.errors import ProviderError, ProviderTimeout
from vibesearch.core.models import Coordinates
from vibesearch.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"
PROVIDER = "google_distance_matrix"
MAX_DESTINATIONS_PER_REQUEST = 25


class DistanceMatrixError(ProviderError):
    """Raised when the Distance Matrix API call fails as a whole."""

    def __init__(self, message: str) -> None:
        super().__init__(PROVIDER, message)


def distance_elements(
    origin: Coordinates,
    destinations: Sequence[Coordinates],
    api_key: str,
    timeout: float = 10,
) -> List[Dict[str, Any]]:
    """Return one raw matrix element per destination, in destination order."""
    if not destinations:
        return []
    if len(destinations) > MAX_DESTINATIONS_PER_REQUEST:
        raise ValueError(f"at most {MAX_DESTINATIONS_PER_REQUEST} destinations per request")

    params = {
        "origins": origin.as_param(),
        "destinations": "|".join(dest.as_param() for dest in destinations),
        "units": "imperial",
        "mode": "driving",
        "key": api_key,
    }
    try:
        response = _SESSION.get(_URL, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.Timeout as exc:
        raise ProviderTimeout(PROVIDER, f"distance matrix timed out after {timeout}s") from exc
    except (requests.RequestException, ValueError) as exc:
        raise DistanceMatrixError(f"distance matrix request failed: {exc}") from exc

    status = payload.get("status")
    if status != "OK":
        logger.error("distance matrix failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise DistanceMatrixError(payload.get("error_message") or status or "unknown status")

    rows = payload.get("rows") or []
    elements = rows[0].get("elements") if rows and isinstance(rows[0], dict) else None
    if not isinstance(elements, list) or len(elements) != len(destinations):
        raise DistanceMatrixError("malformed response: element count does not match destinations")
    return elements
