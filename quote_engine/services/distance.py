"""Great-circle distance and drive-time estimate between two points.

Distance is the haversine approximation, not a routed distance. Duration
assumes a flat 30 mph urban average with a 30 minute floor.
"""

import math
from dataclasses import dataclass

from quote_engine.schemas.quote import Coordinates
from quote_engine.utils.money import round_half_up

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371
AVERAGE_SPEED_MPH = 30.0
MIN_DURATION_MINUTES = 30


@dataclass(frozen=True)
class DistanceEstimate:
    distance_km: float
    distance_miles: float
    duration_minutes: int


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dl = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def estimate_distance(pickup: Coordinates, dropoff: Coordinates) -> DistanceEstimate:
    """Both points must already have passed the sentinel gate."""
    km = haversine_km(pickup, dropoff)
    miles = km * KM_TO_MILES
    minutes = max(MIN_DURATION_MINUTES, round_half_up(miles / AVERAGE_SPEED_MPH * 60))
    return DistanceEstimate(distance_km=km, distance_miles=miles, duration_minutes=minutes)
