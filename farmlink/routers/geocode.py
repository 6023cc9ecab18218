# farmlink/routers/geocode.py
from fastapi import APIRouter, HTTPException, Query

from farmlink.core.geocode import GeocodeError, geocode_address, reverse_geocode

router = APIRouter(prefix="/api/geocode", tags=["geocode"])


# sync on purpose: the geocoder uses a blocking httpx.Client, FastAPI runs these in a threadpool
@router.get("/search")
def search(q: str = Query(..., min_length=1)):
    try:
        return geocode_address(q)
    except GeocodeError as ex:
        raise HTTPException(status_code=502, detail=f"Geocoding failed: {ex}")


@router.get("/reverse")
def reverse(lat: float = Query(..., ge=-90, le=90), lng: float = Query(..., ge=-180, le=180)):
    try:
        return reverse_geocode(lat, lng)
    except GeocodeError as ex:
        raise HTTPException(status_code=502, detail=f"Reverse geocoding failed: {ex}")
