"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

from vibesearch.core.errors import ProviderError, ProviderTimeout
from vibesearch.core.models import Coordinates
from vibesearch.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
PROVIDER = "google_places"


class GooglePlacesError(ProviderError):
    """Raised when the Places API returns a non-successful response."""

    def __init__(self, message: str) -> None:
        super().__init__(PROVIDER, message)


def text_search(
    query: str,
    api_key: str,
    *,
    location: Optional[Coordinates] = None,
    radius_meters: Optional[int] = None,
    timeout: float = 10,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"query": query, "key": api_key}
    if location is not None:
        params["location"] = location.as_param()
    if radius_meters:
        params["radius"] = radius_meters
    try:
        response = _SESSION.get(f"{_BASE_URL}/textsearch/json", params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.Timeout as exc:
        raise ProviderTimeout(PROVIDER, f"text_search timed out after {timeout}s") from exc
    except (requests.RequestException, ValueError) as exc:
        raise GooglePlacesError(f"text_search request failed: {exc}") from exc

    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("text_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status or "unknown status")
    return payload


def photo_url(photo_reference: str, api_key: str, max_width: int = 400) -> str:
    return f"{_BASE_URL}/photo?maxwidth={max_width}&photoreference={photo_reference}&key={api_key}"
