import httpx
import pytest
from httpx import AsyncClient

from farmlink.core import geocode

pytestmark = pytest.mark.anyio


def _mock(monkeypatch, handler):
    monkeypatch.setattr(geocode, "_CLIENT", httpx.Client(transport=httpx.MockTransport(handler)))


def test_forward_lookup(monkeypatch):
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json=[{"lat": "23.8103", "lon": "90.4125", "display_name": "Dhaka, Bangladesh"}])

    _mock(monkeypatch, handler)
    hit = geocode.geocode_address("  Dhaka ")
    assert hit == {"lat": 23.8103, "lng": 90.4125, "display_name": "Dhaka, Bangladesh"}
    assert seen["path"].endswith("/search")
    assert seen["params"] == {"q": "Dhaka", "limit": "1", "format": "json"}
    assert seen["agent"].startswith("FarmLink/")


def test_forward_lookup_without_results(monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, json=[]))
    with pytest.raises(geocode.GeocodeError):
        geocode.geocode_address("Atlantis")
    with pytest.raises(geocode.GeocodeError):
        geocode.geocode_address("   ")


def test_reverse_lookup_picks_district(monkeypatch):
    def handler(request: httpx.Request):
        return httpx.Response(200, json={
            "lat": "24.8949", "lon": "91.8687", "display_name": "Sylhet",
            "address": {"county": "Sylhet Sadar", "state": "Sylhet Division"},
        })

    _mock(monkeypatch, handler)
    hit = geocode.reverse_geocode(24.8949, 91.8687)
    assert hit["district"] == "Sylhet Sadar"
    assert hit["lng"] == 91.8687


def test_reverse_lookup_error_payload(monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    with pytest.raises(geocode.GeocodeError, match="Unable to geocode"):
        geocode.reverse_geocode(0.5, 0.5)


async def test_upstream_failure_is_a_bad_gateway(test_client: AsyncClient, monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(503))
    r = await test_client.get("/api/geocode/search", params={"q": "Rajshahi"})
    assert r.status_code == 502
    assert r.json()["detail"].startswith("Geocoding failed")


async def test_search_endpoint(test_client: AsyncClient, monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, json=[{"lat": "24.37", "lon": "88.60"}]))
    r = await test_client.get("/api/geocode/search", params={"q": "Rajshahi"})
    assert r.status_code == 200
    assert r.json() == {"lat": 24.37, "lng": 88.6, "display_name": None}


def test_non_json_body_is_a_geocode_error(monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, text="<html>rate limited</html>"))
    with pytest.raises(geocode.GeocodeError, match="Malformed"):
        geocode.geocode_address("Khulna")


def test_result_without_coordinates_is_a_geocode_error(monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, json=[{"display_name": "Khulna"}]))
    with pytest.raises(geocode.GeocodeError, match="Malformed"):
        geocode.geocode_address("Khulna")


async def test_malformed_upstream_answer_is_a_bad_gateway(test_client: AsyncClient, monkeypatch):
    _mock(monkeypatch, lambda request: httpx.Response(200, text="not json"))
    r = await test_client.get("/api/geocode/search", params={"q": "Barishal"})
    assert r.status_code == 502
    r = await test_client.get("/api/geocode/reverse", params={"lat": 22.7, "lng": 90.37})
    assert r.status_code == 502
