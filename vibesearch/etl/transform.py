"""Utilities for transforming store rows and Google Places results into candidates."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from vibesearch.core.models import Candidate, Coordinates, SourceKind
from vibesearch.vendors import google_places

logger = logging.getLogger(__name__)

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise"}
PLACEHOLDER_IMAGE_URL = (
    "https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg?auto=compress&cs=tinysrgb&w=400"
)


def _extract_primary_type(types: Iterable[str]) -> Optional[str]:
    for type_name in types or []:
        if type_name not in _IGNORE_TYPES:
            return type_name
    return None


def place_coordinates(result: Mapping[str, Any]) -> Optional[Coordinates]:
    location = (result.get("geometry") or {}).get("location") or {}
    return Coordinates.parse(location.get("lat"), location.get("lng"))


def place_to_candidate(result: Mapping[str, Any], api_key: str) -> Optional[Candidate]:
    """Build an external-place candidate, or None when the result lacks a place id or name."""
    place_id = result.get("place_id")
    name = (result.get("name") or "").strip()
    if not place_id or not name:
        logger.debug("Skipping place without place_id or name: %s", result)
        return None

    types = list(result.get("types") or [])
    opening_hours = result.get("opening_hours") or {}
    photos = result.get("photos") or []
    image = PLACEHOLDER_IMAGE_URL
    if photos and photos[0].get("photo_reference"):
        image = google_places.photo_url(photos[0]["photo_reference"], api_key)

    payload = {
        "name": name,
        "address": result.get("formatted_address") or result.get("vicinity") or "Address not available",
        "location": result.get("vicinity") or result.get("formatted_address"),
        "category": _extract_primary_type(types),
        "types": types,
        "googleRating": result.get("rating"),
        "userRatingsTotal": result.get("user_ratings_total"),
        "isOpen": opening_hours.get("open_now") is not False,
        "hours": "Currently open" if opening_hours.get("open_now") else "Hours not available",
        "image": image,
        "placeId": place_id,
        "isPlatformBusiness": False,
        "isGoogleVerified": True,
        "reviews": [],
    }
    return Candidate(
        identity=str(place_id),
        source_kind=SourceKind.EXTERNAL_PLACE,
        coordinates=place_coordinates(result),
        payload=payload,
    )


def describe_place(candidate: Candidate) -> str:
    """Descriptive text (name, type, rating, snippet) used to embed a place."""
    payload = candidate.payload
    parts = [
        payload.get("name"),
        " ".join(t.replace("_", " ") for t in payload.get("types") or [] if t not in _IGNORE_TYPES),
        f"{payload['googleRating']} star rating" if payload.get("googleRating") is not None else None,
        payload.get("location"),
    ]
    return " ".join(part for part in parts if part).strip()


def _pick_image(row: Mapping[str, Any]) -> str:
    return row.get("offering_image_url") or row.get("business_image_url") or PLACEHOLDER_IMAGE_URL


def _format_review(review: Mapping[str, Any]) -> Dict[str, Any]:
    created_at = review.get("created_at")
    return {
        "text": review.get("review_text"),
        "rating": review.get("rating"),
        "images": list(review.get("image_urls") or []),
        "createdAt": created_at.isoformat() if hasattr(created_at, "isoformat") else created_at,
    }


def offering_to_candidate(
    hit: Mapping[str, Any],
    offering: Optional[Mapping[str, Any]],
    reviews: Iterable[Mapping[str, Any]] = (),
) -> Candidate:
    """Merge a similarity hit with its hydrated offering row into an embedding-match candidate.

    When the offering could not be hydrated (deleted or deactivated between the
    similarity search and the hydrate query) the candidate keeps only the hit's ids.
    """
    business_id = str(hit.get("business_id") or hit["id"])
    similarity = hit.get("similarity")
    row: Mapping[str, Any] = offering or {}

    payload: Dict[str, Any] = {
        "offeringId": str(hit["id"]),
        "businessId": business_id,
        "title": row.get("title"),
        "description": row.get("description"),
        "tags": list(row.get("tags") or []),
        "priceCents": row.get("price_cents"),
        "currency": row.get("currency") or "USD",
        "serviceType": row.get("service_type"),
        "name": row.get("business_name"),
        "address": row.get("address"),
        "location": row.get("location"),
        "category": row.get("category"),
        "shortDescription": row.get("short_description"),
        "image": _pick_image(row),
        "hours": row.get("hours") or "Hours not available",
        "phoneNumber": row.get("phone_number"),
        "websiteUrl": row.get("website_url"),
        "isVerified": bool(row.get("is_verified")),
        "isOpen": True,
        "isPlatformBusiness": True,
        "rating": {
            "thumbsUp": row.get("thumbs_up") or 0,
            "thumbsDown": row.get("thumbs_down") or 0,
            "sentimentScore": row.get("sentiment_score") or 0,
        },
        "reviews": [_format_review(review) for review in reviews],
    }
    if offering is None:
        logger.warning("Offering %s missing from hydrate query; returning bare match", hit["id"])

    return Candidate(
        identity=business_id,
        source_kind=SourceKind.EMBEDDING_MATCH,
        raw_score=float(similarity) if similarity is not None else None,
        coordinates=Coordinates.parse(row.get("latitude"), row.get("longitude")),
        payload=payload,
    )


def offering_embedding_text(row: Mapping[str, Any]) -> str:
    """Text embedded for an offering: offering details followed by business context."""
    parts: List[Optional[str]] = [
        row.get("title"),
        row.get("description"),
        row.get("service_type"),
        " ".join(row.get("tags") or []),
        row.get("business_name"),
        row.get("category"),
        row.get("location"),
        row.get("business_description"),
        " ".join(row.get("business_tags") or []),
    ]
    return " ".join(part for part in parts if part).strip()
