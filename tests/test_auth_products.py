import asyncio
import io

import pytest
from httpx import AsyncClient
from PIL import Image

pytestmark = pytest.mark.anyio


async def test_register_login_and_profile(test_client: AsyncClient):
    r = await test_client.post("/api/auth/register", json={
        "name": "Rahim", "email": "Rahim@FarmLink.io", "password": "secret123", "role": "transporter",
        "base_location": {"lat": 23.81, "lng": 90.41}, "farm_location": {"lat": 1, "lng": 1},
    })
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "transporter"

    tok = (await test_client.post("/api/auth/token", data={"username": "rahim@farmlink.io",
                                                           "password": "secret123"})).json()
    headers = {"Authorization": f"Bearer {tok['access_token']}"}

    me = (await test_client.get("/api/auth/me", headers=headers)).json()
    assert me["email"] == "rahim@farmlink.io"
    assert "password_hash" not in me
    assert "farm_location" not in me

    r = await test_client.patch("/api/auth/me", headers=headers, json={"service_districts": ["Gazipur"]})
    assert r.json()["service_districts"] == ["Gazipur"]


async def test_duplicate_email_and_bad_password(test_client: AsyncClient, market):
    await market.register("buyer")
    r = await test_client.post("/api/auth/register", json={
        "name": "Again", "email": "buyer1@farmlink.io", "password": "secret123", "role": "buyer",
    })
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    r = await test_client.post("/api/auth/token", data={"username": "buyer1@farmlink.io", "password": "nope"})
    assert r.status_code == 401


async def test_bad_token(test_client: AsyncClient):
    r = await test_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_product_crud_is_owner_only(test_client: AsyncClient, market):
    farmer = await market.register("farmer", farm_location={"lat": 23.9, "lng": 90.41})
    rival = await market.register("farmer")
    product = await market.product(farmer, crop_name="Brinjal", quantity=0)
    assert product["status"] == "sold_out"
    assert product["location"]["location"] == {"lat": 23.9, "lng": 90.41}

    r = await test_client.patch(f"/api/products/{product['id']}", headers=rival["headers"], json={"quantity": 5})
    assert r.status_code == 403

    r = await test_client.patch(f"/api/products/{product['id']}", headers=farmer["headers"], json={"quantity": 5})
    assert r.json()["data"]["status"] == "available"

    found = (await test_client.get("/api/products", params={"q": "brin"})).json()
    assert [p["id"] for p in found["data"]] == [product["id"]]

    assert (await test_client.delete(f"/api/products/{product['id']}", headers=farmer["headers"])).json() == {"deleted": True}
    assert (await test_client.get(f"/api/products/{product['id']}")).status_code == 404


async def test_health(test_client: AsyncClient):
    assert (await test_client.get("/health")).json() == {"ok": True}


async def test_product_photo_upload(test_client: AsyncClient, market, storage):
    buf = io.BytesIO()
    Image.new("RGB", (6, 6), color=(240, 200, 10)).save(buf, format="PNG")
    farmer = await market.register("farmer")
    product = await market.product(farmer)

    r = await test_client.post(f"/api/products/{product['id']}/photos", headers=farmer["headers"],
                               files={"photo": ("mango.png", buf.getvalue(), "image/png")})
    assert r.status_code == 200, r.text
    url = r.json()["data"]["photo_url"]
    assert r.json()["data"]["photos"] == [url]
    assert storage.exists(url)


def _png(color=(10, 120, 200)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (5, 5), color=color).save(buf, format="PNG")
    return buf.getvalue()


async def test_uploaded_photo_is_served_as_an_image(test_client: AsyncClient, market):
    farmer = await market.register("farmer")
    product = await market.product(farmer)
    data = _png()

    r = await test_client.post(f"/api/products/{product['id']}/photos", headers=farmer["headers"],
                               files={"photo": ("x.html", data, "image/png")})
    url = r.json()["data"]["photo_url"]
    assert url.endswith(".png")

    served = await test_client.get(url)
    assert served.status_code == 200
    assert served.headers["content-type"] == "image/png"
    assert served.content == data

    assert (await test_client.get("/uploads/products/missing.png")).status_code == 404
    assert (await test_client.get("/uploads/..%2F..%2Fpyproject.toml")).status_code == 404


async def test_concurrent_photo_uploads_keep_every_url(test_client: AsyncClient, market, repo):
    farmer = await market.register("farmer")
    product = await market.product(farmer)

    first, second = await asyncio.gather(*(
        test_client.post(f"/api/products/{product['id']}/photos", headers=farmer["headers"],
                         files={"photo": (f"p{i}.png", _png((i, i, i)), "image/png")})
        for i in range(2)
    ))
    urls = {first.json()["data"]["photo_url"], second.json()["data"]["photo_url"]}
    stored = await repo.find_product(product["id"])
    assert set(stored["photos"]) == urls


async def test_push_photo_to_missing_product(repo):
    assert await repo.push_product_photo("nope", "/uploads/products/a.png") is None
