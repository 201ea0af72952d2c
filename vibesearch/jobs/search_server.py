"""HTTP entrypoint for vibe search and distance lookups (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
import random
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List

from flask import Flask, jsonify, request

from vibesearch.core import db
from vibesearch.core.config import Settings, get_settings, require_settings
from vibesearch.core.errors import ConfigurationError, ProviderError, ValidationError
from vibesearch.core.models import Coordinates, DistanceDestination, SearchRequest
from vibesearch.search.distance import DistanceEnricher, GeoDistanceResolver
from vibesearch.search.embeddings import EmbeddingClient
from vibesearch.search.orchestrator import SearchOrchestrator
from vibesearch.search.sources.ai_generated import AIGeneratedSource
from vibesearch.search.sources.embedding_match import EmbeddingMatchSource
from vibesearch.search.sources.external_place import ExternalPlaceSource
from vibesearch.vendors import geocoding

logger = logging.getLogger(__name__)

SEARCH_WORKERS = 8

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=SEARCH_WORKERS)
_rng = random.Random()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@app.after_request
def add_cors_headers(response):
    for header, value in CORS_HEADERS.items():
        response.headers[header] = value
    return response


# ---------- Wiring ----------


def build_orchestrator(settings: Settings, search_request: SearchRequest) -> SearchOrchestrator:
    """Check credentials for this request and assemble the pipeline."""
    required = ["openai_api_key", "database_url"]
    if search_request.origin is not None:
        required += ["google_places_api_key", "google_distance_matrix_api_key"]
    require_settings(settings, *required)

    embeddings = EmbeddingClient(settings.openai_api_key, model=settings.embedding_model)
    place_source = None
    enricher = None
    if search_request.origin is not None:
        place_source = ExternalPlaceSource(settings.google_places_api_key, embeddings)
        enricher = DistanceEnricher(GeoDistanceResolver(settings.google_distance_matrix_api_key))

    return SearchOrchestrator(
        embeddings,
        embedding_source=EmbeddingMatchSource(db),
        place_source=place_source,
        ai_source=AIGeneratedSource(settings.openai_api_key, model=settings.chat_model),
        enricher=enricher,
        executor=_executor,
        timeout_seconds=settings.search_timeout_seconds,
    )


def _configuration_error(exc: ConfigurationError):
    logger.error("Configuration error: %s", exc)
    return (
        jsonify(
            {
                "error": "Configuration error",
                "message": str(exc),
                "troubleshooting": [f"Set {variable} in the worker environment" for variable in exc.variables]
                + ["Restart the worker after updating the environment"],
            }
        ),
        500,
    )


def _json_body() -> Any:
    """Parsed JSON body; a missing or unparseable body reads as an empty object."""
    payload = request.get_json(silent=True)
    return {} if payload is None else payload


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches providers."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "revision": os.getenv("K_REVISION", "unknown"),
                "region": os.getenv("X_GOOGLE_RUNTIMEREGION", "unknown"),
            }
        ),
        200,
    )


@app.post("/search")
def search() -> Any:
    payload = _json_body()
    try:
        search_request = SearchRequest.from_payload(payload)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        orchestrator = build_orchestrator(get_settings(), search_request)
        outcome = orchestrator.search(search_request)
    except ConfigurationError as exc:
        return _configuration_error(exc)
    except ProviderError as exc:
        logger.error("Search failed for query=%s: %s", search_request.query, exc)
        return (
            jsonify(
                {
                    "error": "Search failed",
                    "message": str(exc),
                    "troubleshooting": [
                        "Check the embedding provider status and API key",
                        "Retry the search",
                    ],
                }
            ),
            500,
        )

    body: Dict[str, Any] = {
        "success": True,
        "results": [candidate.to_dict() for candidate in outcome.candidates],
        "query": search_request.query,
        "matchCount": search_request.match_count,
        "matchThreshold": search_request.match_threshold,
        "searchSources": outcome.source_counts,
        "degraded": outcome.degraded,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if outcome.message:
        body["message"] = outcome.message
        body["suggestions"] = outcome.suggestions
    return jsonify(body), 200


@app.post("/distances")
def distances() -> Any:
    """Driving distance from one origin to many businesses.

    Destinations the provider cannot resolve get a plausible random
    distance flagged with ``isFallback``.
    """
    payload = _json_body()
    if not isinstance(payload, dict):
        return jsonify({"error": "request body must be a JSON object"}), 400
    origin_raw = payload.get("origin") or {}
    origin = Coordinates.parse(origin_raw.get("latitude"), origin_raw.get("longitude")) if isinstance(
        origin_raw, dict
    ) else None
    if origin is None:
        return jsonify({"error": "origin with latitude and longitude is required"}), 400

    destinations_raw = payload.get("destinations")
    if not isinstance(destinations_raw, list):
        return jsonify({"error": "destinations must be an array"}), 400

    settings = get_settings()
    try:
        require_settings(settings, "google_distance_matrix_api_key")
    except ConfigurationError as exc:
        return _configuration_error(exc)

    located: List[DistanceDestination] = []
    for index, item in enumerate(destinations_raw):
        item = item if isinstance(item, dict) else {}
        identity = str(item.get("businessId") or index)
        coordinates = Coordinates.parse(item.get("latitude"), item.get("longitude"))
        if coordinates is not None:
            located.append(DistanceDestination(identity=identity, coordinates=coordinates))

    resolver = GeoDistanceResolver(settings.google_distance_matrix_api_key)
    try:
        resolved = {result.identity: result for result in resolver.resolve(origin, located)} if located else {}
    except ProviderError as exc:
        logger.error("Distance lookup failed for %d destinations: %s", len(located), exc)
        return jsonify({"error": "Distance lookup failed", "message": str(exc)}), 500

    results = []
    for index, item in enumerate(destinations_raw):
        item = item if isinstance(item, dict) else {}
        identity = str(item.get("businessId") or index)
        result = resolved.get(identity)
        if result is not None and result.ok:
            results.append(
                {
                    "businessId": item.get("businessId"),
                    "distance": result.distance_miles,
                    "duration": result.eta_minutes,
                    "distanceText": result.distance_text,
                    "durationText": result.duration_text,
                    "isFallback": False,
                }
            )
            continue
        distance = round(_rng.uniform(1.0, 5.0), 1)
        duration = _rng.randint(5, 15)
        results.append(
            {
                "businessId": item.get("businessId"),
                "distance": distance,
                "duration": duration,
                "distanceText": f"{distance} mi",
                "durationText": f"{duration} mins",
                "isFallback": True,
            }
        )

    return (
        jsonify(
            {
                "success": True,
                "results": results,
                "origin": origin.to_dict(),
                "destinationCount": len(destinations_raw),
            }
        ),
        200,
    )


@app.post("/geocode")
def geocode_address() -> Any:
    payload = _json_body()
    if not isinstance(payload, dict):
        return jsonify({"error": "request body must be a JSON object"}), 400
    address = payload.get("address")
    if not isinstance(address, str) or not address.strip():
        return jsonify({"error": "address is required"}), 400

    settings = get_settings()
    try:
        require_settings(settings, "google_geocoding_api_key")
    except ConfigurationError as exc:
        return _configuration_error(exc)

    try:
        location = geocoding.geocode(address, settings.google_geocoding_api_key)
    except geocoding.GeocodingError as exc:
        status = 400 if exc.status in geocoding.STATUS_MESSAGES else 500
        return jsonify({"error": geocoding.STATUS_MESSAGES.get(exc.status, str(exc)), "status": exc.status}), status
    except ProviderError as exc:
        logger.error("Geocoding failed for %s: %s", address, exc)
        return jsonify({"error": "Geocoding failed", "message": str(exc)}), 500

    return (
        jsonify(
            {
                "success": True,
                "latitude": location["latitude"],
                "longitude": location["longitude"],
                "formattedAddress": location["formatted_address"],
                "placeId": location["place_id"],
            }
        ),
        200,
    )


def main() -> None:
    """Bind to the PORT injected by Cloud Run, falling back to 8080 locally."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or 8080)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
