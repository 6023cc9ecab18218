# farmlink/core/geocode.py
from __future__ import annotations

import logging
from typing import Dict, Any

import httpx

from farmlink.core.config import settings

logger = logging.getLogger(__name__)

# Global timeout
_CLIENT = httpx.Client(timeout=12)


class GeocodeError(Exception):
    pass


def _headers() -> Dict[str, str]:
    # Nominatim policy: identify the app and a contact
    return {"User-Agent": f"FarmLink/1.0 (+{settings.admin_contact})"}


def _get(path: str, params: Dict[str, Any]):
    url = settings.geocoder_url.rstrip("/") + path
    try:
        r = _CLIENT.get(url, params={**params, "format": "json"}, headers=_headers())
        r.raise_for_status()
    except httpx.HTTPError as ex:
        logger.warning("Geocoder request to %s failed: %s", path, ex)
        raise GeocodeError(str(ex)) from ex
    try:
        return r.json()
    except ValueError as ex:
        logger.warning("Geocoder returned a non-JSON body for %s", path)
        raise GeocodeError("Malformed geocoder response") from ex


def geocode_address(address: str) -> Dict[str, Any]:
    """
    Forward lookup. Returns {"lat", "lng", "display_name"}; raises GeocodeError on failure.
    """
    a = (address or "").strip()
    if not a:
        raise GeocodeError("Empty address")

    js = _get("/search", {"q": a, "limit": 1})
    if not js:
        raise GeocodeError("No results")
    try:
        hit = js[0]
        return {
            "lat": float(hit["lat"]),
            "lng": float(hit["lon"]),
            "display_name": hit.get("display_name"),
        }
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as ex:
        raise GeocodeError(f"Malformed geocoder result: {ex!r}") from ex


def reverse_geocode(lat: float, lng: float) -> Dict[str, Any]:
    js = _get("/reverse", {"lat": lat, "lon": lng})
    if not isinstance(js, dict) or not js or "error" in js:
        raise GeocodeError((js if isinstance(js, dict) else {}).get("error") or "No results")
    address = js.get("address") or {}
    try:
        return {
            "lat": float(js.get("lat", lat)),
            "lng": float(js.get("lon", lng)),
            "display_name": js.get("display_name"),
            "district": address.get("state_district") or address.get("county") or address.get("city"),
        }
    except (TypeError, ValueError, AttributeError) as ex:
        raise GeocodeError(f"Malformed geocoder result: {ex!r}") from ex
