"""Great-circle helpers."""

import math

from vibesearch.core.models import Coordinates

EARTH_RADIUS_MILES = 3959.0
METERS_PER_MILE = 1609.344


def haversine_miles(origin: Coordinates, destination: Coordinates) -> float:
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_radius(origin: Coordinates, destination: Coordinates, radius_miles: float) -> bool:
    return haversine_miles(origin, destination) <= radius_miles


def miles_to_meters(miles: float) -> int:
    return int(round(miles * METERS_PER_MILE))
