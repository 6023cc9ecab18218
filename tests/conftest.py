# tests/conftest.py
import pytest
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

from farmlink.core.config import settings
from farmlink.deps import get_repo
from farmlink.main import app
from farmlink.repos.inmemory import InMemoryRepo
from farmlink.services.storage import PhotoStorage, get_storage

# Dhaka: a farm and a buyer both within reach of a transporter based at 23.81, 90.41
FARM = {"lat": 23.90, "lng": 90.41}
NEAR_BUYER = {"lat": 23.75, "lng": 90.37}


@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"


@pytest.fixture
def repo():
    return InMemoryRepo()


@pytest.fixture
def storage(tmp_path):
    return PhotoStorage(root=str(tmp_path / "uploads"))


@pytest.fixture
async def test_client(repo, storage, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(storage.root))
    app.dependency_overrides[get_repo] = lambda: repo
    app.dependency_overrides[get_storage] = lambda: storage
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()


class Market:
    """HTTP helpers that walk an order through the marketplace."""

    def __init__(self, client: AsyncClient):
        self.client = client
        self._n = 0

    async def register(self, role: str, **extra) -> dict:
        self._n += 1
        email = f"{role}{self._n}@farmlink.io"
        r = await self.client.post("/api/auth/register", json={
            "name": f"{role.title()} {self._n}",
            "email": email,
            "password": "secret123",
            "role": role,
            **extra,
        })
        assert r.status_code == 201, r.text
        tok = (await self.client.post("/api/auth/token", data={
            "username": email, "password": "secret123"
        })).json()
        return {"id": tok["user_id"], "headers": {"Authorization": f"Bearer {tok['access_token']}"}}

    async def product(self, farmer: dict, **extra) -> dict:
        body = {"crop_name": "Tomato", "price_per_unit": 40.0, "unit": "kg", "quantity": 100, **extra}
        r = await self.client.post("/api/products", json=body, headers=farmer["headers"])
        assert r.status_code == 201, r.text
        return r.json()["data"]

    async def order(self, buyer: dict, product: dict, quantity: float = 10,
                    location: dict | None = None, district: str = "Dhaka") -> dict:
        r = await self.client.post("/api/orders", headers=buyer["headers"], json={
            "product_id": product["id"],
            "quantity": quantity,
            "delivery_address": {
                "address": "House 1, Road 2",
                "district": district,
                "location": location or NEAR_BUYER,
            },
        })
        assert r.status_code == 201, r.text
        return r.json()["data"]

    async def confirm(self, farmer: dict, order: dict) -> dict:
        r = await self.client.put(f"/api/orders/{order['id']}/status",
                                  headers=farmer["headers"], json={"status": "confirmed"})
        assert r.status_code == 200, r.text
        return r.json()["data"]

    async def confirmed_order(self, buyer_location: dict | None = None) -> dict:
        farmer = await self.register("farmer", farm_location=FARM)
        buyer = await self.register("buyer")
        product = await self.product(farmer)
        order = await self.order(buyer, product, location=buyer_location)
        await self.confirm(farmer, order)
        return {"farmer": farmer, "buyer": buyer, "product": product, "order": order}


@pytest.fixture
def market(test_client):
    return Market(test_client)
