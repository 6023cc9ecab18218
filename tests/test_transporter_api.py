import io

import pytest
from httpx import AsyncClient
from PIL import Image

BASE = {"lat": 23.81, "lng": 90.41}
FAR_BUYER = {"lat": 24.50, "lng": 91.50}

pytestmark = pytest.mark.anyio


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


async def test_jobs_are_ranked_and_annotated(test_client: AsyncClient, market):
    near = await market.confirmed_order()
    far = await market.confirmed_order(buyer_location=FAR_BUYER)
    t = await market.register("transporter", base_location=BASE)

    r = await test_client.get("/api/transporter/jobs", headers=t["headers"])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["count"] == 2
    assert body["max_service_radius"] == 50
    assert body["transporter_location"] == BASE

    first, second = body["data"]
    assert first["id"] == near["order"]["id"]
    assert first["is_within_range"] is True
    assert first["distance_warning"] is None
    assert second["id"] == far["order"]["id"]
    assert second["is_within_range"] is False
    assert second["distance_warning"].startswith("Delivery location is")
    assert second["farmer"]["farm_location"] is not None


async def test_pending_orders_are_not_jobs(test_client: AsyncClient, market):
    farmer = await market.register("farmer")
    buyer = await market.register("buyer")
    product = await market.product(farmer)
    await market.order(buyer, product)
    t = await market.register("transporter")

    r = await test_client.get("/api/transporter/jobs", headers=t["headers"])
    assert r.json()["count"] == 0


async def test_jobs_without_base_location(test_client: AsyncClient, market):
    await market.confirmed_order(buyer_location=FAR_BUYER)
    t = await market.register("transporter")
    body = (await test_client.get("/api/transporter/jobs", headers=t["headers"])).json()
    job = body["data"][0]
    assert body["transporter_location"] is None
    assert job["is_within_range"] is True
    assert job["distances"]["to_farmer"] is None
    assert job["distances"]["to_buyer"] is None


async def test_jobs_require_transporter_role(test_client: AsyncClient, market):
    buyer = await market.register("buyer")
    r = await test_client.get("/api/transporter/jobs", headers=buyer["headers"])
    assert r.status_code == 403


async def test_accept_upload_and_deliver(test_client: AsyncClient, market):
    deal = await market.confirmed_order()
    order_id = deal["order"]["id"]
    t = await market.register("transporter", base_location=BASE)

    r = await test_client.post(f"/api/transporter/jobs/{order_id}/accept", headers=t["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["data"]["delivery_status"] == "assigned"

    # picked without a photo
    r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t["headers"],
                              json={"status": "picked"})
    assert r.status_code == 400
    assert r.json()["code"] == "photo_required"

    r = await test_client.post(f"/api/transporter/jobs/{order_id}/photo", headers=t["headers"],
                               files={"photo": ("crate.png", _png(), "image/png")})
    assert r.status_code == 200, r.text
    photo_url = r.json()["data"]["photo_url"]
    assert photo_url.startswith("/uploads/deliveries/")

    r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t["headers"],
                              json={"status": "picked", "photo": photo_url})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["pickup_photo"]["url"] == photo_url

    for status in ("in_transit", "delivered"):
        r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t["headers"],
                                  json={"status": status})
        assert r.status_code == 200, r.text

    order = (await test_client.get(f"/api/orders/{order_id}", headers=deal["buyer"]["headers"])).json()["data"]
    assert order["order_status"] == "completed"
    assert order["actual_delivery_date"] is not None

    mine = (await test_client.get("/api/transporter/my-deliveries?status=delivered", headers=t["headers"])).json()
    assert mine["count"] == 1

    stats = (await test_client.get("/api/transporter/stats", headers=t["headers"])).json()["data"]
    assert stats["completed_deliveries"] == 1
    assert stats["total_earnings"] == 100


async def test_accept_conflicts_and_errors(test_client: AsyncClient, market):
    deal = await market.confirmed_order()
    order_id = deal["order"]["id"]
    t1 = await market.register("transporter", base_location=BASE)
    t2 = await market.register("transporter", base_location=BASE)

    assert (await test_client.post(f"/api/transporter/jobs/{order_id}/accept", headers=t1["headers"])).status_code == 200

    r = await test_client.post(f"/api/transporter/jobs/{order_id}/accept", headers=t2["headers"])
    assert r.status_code == 409
    assert r.json()["code"] == "already_assigned"

    r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t2["headers"],
                              json={"status": "picked", "photo": "/x.png"})
    assert r.status_code == 403
    assert r.json()["code"] == "not_assigned"

    r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t1["headers"],
                              json={"status": "delivered"})
    assert r.status_code == 400
    assert r.json() == {
        "detail": "Cannot change status from 'assigned' to 'delivered'",
        "code": "invalid_transition",
        "current": "assigned",
        "requested": "delivered",
    }

    r = await test_client.put(f"/api/transporter/jobs/{order_id}/status", headers=t1["headers"],
                              json={"status": "teleported"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_status"

    r = await test_client.post("/api/transporter/jobs/missing/accept", headers=t1["headers"])
    assert r.status_code == 404


async def test_accept_out_of_range_job(test_client: AsyncClient, market):
    deal = await market.confirmed_order(buyer_location=FAR_BUYER)
    t = await market.register("transporter", base_location=BASE)
    r = await test_client.post(f"/api/transporter/jobs/{deal['order']['id']}/accept", headers=t["headers"])
    assert r.status_code == 400
    assert r.json()["code"] == "out_of_service_area"
    assert r.json()["detail"] == "This job is outside your service radius of 50km"


async def test_photo_upload_rejects_non_images(test_client: AsyncClient, market):
    deal = await market.confirmed_order()
    t = await market.register("transporter")
    r = await test_client.post(f"/api/transporter/jobs/{deal['order']['id']}/photo", headers=t["headers"],
                               files={"photo": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 400
    assert r.json()["detail"] == "Only image files are allowed"

    r = await test_client.post(f"/api/transporter/jobs/{deal['order']['id']}/photo", headers=t["headers"],
                               files={"photo": ("fake.png", b"not really a png", "image/png")})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid image file")


async def test_district_filter_and_pending_job_stats(test_client: AsyncClient, market):
    await market.confirmed_order()
    t = await market.register("transporter", service_districts=["Chattogram"])

    r = await test_client.get("/api/transporter/jobs?district=dhaka", headers=t["headers"])
    assert r.json()["count"] == 1
    r = await test_client.get("/api/transporter/jobs?district=Sylhet", headers=t["headers"])
    assert r.json()["count"] == 0

    stats = (await test_client.get("/api/transporter/stats", headers=t["headers"])).json()["data"]
    assert stats["pending_jobs"] == 0
