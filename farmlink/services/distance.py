# farmlink/services/distance.py
"""Job distance filter.

Listing and accept both go through ``evaluate_legs`` so a job shown as in
range is judged by the same function and radius when it is accepted.
"""
from math import radians, sin, cos, asin, sqrt
from typing import Callable, Dict, List, Optional, Tuple

EARTH_RADIUS_KM = 6371.0
MAX_DISTANCE_KM = 50

LatLng = Dict[str, float]


def haversine_km(a: LatLng, b: LatLng) -> float:
    """
    a, b: dicts like {"lat": float, "lng": float}
    returns great-circle distance in km
    """
    dlat = radians(b["lat"] - a["lat"])
    dlng = radians(b["lng"] - a["lng"])
    s = sin(dlat / 2) ** 2 + cos(radians(a["lat"])) * cos(radians(b["lat"])) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(s))


def as_point(loc) -> Optional[LatLng]:
    """Normalise a {"lat","lng"} dict; None when missing, unparsable or (0, 0)."""
    if not isinstance(loc, dict):
        return None
    try:
        lat = float(loc.get("lat"))
        lng = float(loc.get("lng"))
    except (TypeError, ValueError):
        return None
    if lat == 0.0 and lng == 0.0:
        return None
    return {"lat": lat, "lng": lng}


def evaluate_legs(transporter: Optional[LatLng], pickup: Optional[LatLng],
                  delivery: Optional[LatLng], radius_km: float = MAX_DISTANCE_KM) -> dict:
    base = as_point(transporter)
    pickup = as_point(pickup)
    delivery = as_point(delivery)

    to_farmer = haversine_km(base, pickup) if base and pickup else None
    to_buyer = haversine_km(base, delivery) if base and delivery else None

    pickup_far = to_farmer is not None and to_farmer > radius_km
    delivery_far = to_buyer is not None and to_buyer > radius_km

    warning = None
    if pickup_far and delivery_far:
        warning = f"Both locations are too far ({max(to_farmer, to_buyer):.1f}km)"
    elif pickup_far:
        warning = f"Pickup location is {to_farmer:.1f}km away"
    elif delivery_far:
        warning = f"Delivery location is {to_buyer:.1f}km away"

    max_distance = None
    if to_farmer is not None or to_buyer is not None:
        max_distance = max(to_farmer or 0, to_buyer or 0)

    return {
        "distances": {
            "to_farmer": to_farmer,
            "to_buyer": to_buyer,
            "max_distance": max_distance,
        },
        "is_within_range": not (pickup_far or delivery_far),
        "distance_warning": warning,
    }


def _rank_key(job: dict) -> Tuple[int, float]:
    return (0 if job["is_within_range"] else 1, job["distances"]["max_distance"] or 0)


def rank_jobs(transporter: Optional[LatLng], jobs: List[dict],
              locate: Callable[[dict], Tuple[Optional[LatLng], Optional[LatLng]]],
              radius_km: float = MAX_DISTANCE_KM) -> List[dict]:
    """
    Annotate every job with distances/range flags and order them:
    in-range first, then by the longer leg (unknown legs count as 0).
    ``locate(job)`` returns (pickup, delivery) coordinates.
    """
    out = []
    for job in jobs:
        pickup, delivery = locate(job)
        out.append({**job, **evaluate_legs(transporter, pickup, delivery, radius_km)})
    out.sort(key=_rank_key)
    return out
