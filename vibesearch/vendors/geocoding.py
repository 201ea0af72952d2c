"""Client utilities for the Google Geocoding API."""

import logging
from typing import Any, Dict

import requests

from vibesearch.core.errors import ProviderError, ProviderTimeout
from vibesearch.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_URL = "https://maps.googleapis.com/maps/api/geocode/json"
PROVIDER = "google_geocoding"

STATUS_MESSAGES = {
    "ZERO_RESULTS": "No results found for this address. Please check the address and try again.",
    "OVER_QUERY_LIMIT": "Geocoding service temporarily unavailable. Please try again later.",
    "REQUEST_DENIED": "Geocoding request denied. Please check API configuration.",
    "INVALID_REQUEST": "Invalid address format. Please provide a complete address.",
}


class GeocodingError(ProviderError):
    """Raised when an address cannot be resolved to coordinates."""

    def __init__(self, status: str, message: str) -> None:
        self.status = status
        super().__init__(PROVIDER, message)


def geocode(address: str, api_key: str, timeout: float = 10) -> Dict[str, Any]:
    if not address or not address.strip():
        raise ValueError("address must be provided for geocoding")

    try:
        response = _SESSION.get(_URL, params={"address": address.strip(), "key": api_key}, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.Timeout as exc:
        raise ProviderTimeout(PROVIDER, f"geocoding timed out after {timeout}s") from exc
    except (requests.RequestException, ValueError) as exc:
        raise GeocodingError("REQUEST_FAILED", f"geocoding request failed: {exc}") from exc

    status = payload.get("status") or "UNKNOWN"
    if status != "OK":
        logger.warning("geocode failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GeocodingError(status, STATUS_MESSAGES.get(status, f"Geocoding error: {status}"))

    results = payload.get("results") or []
    location = (results[0].get("geometry") or {}).get("location") if results else None
    if not location or location.get("lat") is None or location.get("lng") is None:
        raise GeocodingError("NO_COORDINATES", "No valid coordinates found for this address")

    return {
        "latitude": location["lat"],
        "longitude": location["lng"],
        "formatted_address": results[0].get("formatted_address"),
        "place_id": results[0].get("place_id"),
    }
