import io

import pytest
from fastapi import UploadFile
from PIL import Image
from starlette.datastructures import Headers

from farmlink.core.errors import ValidationFailed
from farmlink.services.storage import PhotoStorage, prune_missing_photos

pytestmark = pytest.mark.anyio


def _upload(data: bytes, filename: str = "crate.jpg", content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


def _jpeg() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=(20, 160, 40)).save(buf, format="JPEG")
    return buf.getvalue()


async def test_save_writes_under_folder(storage: PhotoStorage):
    url = await storage.save(_upload(_jpeg()), "deliveries", field="pickup")
    assert url.startswith("/uploads/deliveries/pickup-")
    assert url.endswith(".jpg")
    assert storage.exists(url)
    assert storage.path_for(url).read_bytes() == _jpeg()


async def test_save_rejects_bad_uploads(storage: PhotoStorage):
    with pytest.raises(ValidationFailed, match="Please upload a photo"):
        await storage.save(_upload(b""), "deliveries")
    with pytest.raises(ValidationFailed, match="Only image files"):
        await storage.save(_upload(b"%PDF-1.4", "bill.pdf", "application/pdf"), "deliveries")


async def test_save_enforces_size_limit(tmp_path):
    small = PhotoStorage(root=str(tmp_path), max_mb=1)
    with pytest.raises(ValidationFailed, match="cannot exceed"):
        await small.save(_upload(b"\xff" * (1024 * 1024 + 1)), "deliveries")


def test_prune_missing_photos(storage: PhotoStorage):
    kept = storage.root / "deliveries" / "kept.jpg"
    kept.parent.mkdir(parents=True)
    kept.write_bytes(b"x")

    order = {
        "order_number": "ORD-20250101-ABCDEF",
        "pickup_photo": {"url": "/uploads/deliveries/kept.jpg"},
        "delivery_proof_photo": {"url": "/uploads/deliveries/gone.jpg"},
        "status_history": [
            {"status": "picked", "photo": "/uploads/deliveries/kept.jpg"},
            {"status": "delivered", "photo": "/uploads/deliveries/gone.jpg"},
        ],
    }
    fields = prune_missing_photos(order, storage)
    assert fields["delivery_proof_photo"] is None
    assert "pickup_photo" not in fields
    assert [h["photo"] for h in fields["status_history"]] == ["/uploads/deliveries/kept.jpg", None]


def test_prune_nothing_missing(storage: PhotoStorage):
    assert prune_missing_photos({"pickup_photo": None, "status_history": []}, storage) == {}


async def test_extension_comes_from_the_verified_format(storage: PhotoStorage):
    buf = io.BytesIO()
    Image.new("RGB", (4, 4)).save(buf, format="PNG")
    url = await storage.save(_upload(buf.getvalue(), "x.html", "image/png"), "deliveries")
    assert url.endswith(".png")
    assert ".html" not in url


def test_resolve_stays_inside_the_root(storage: PhotoStorage, tmp_path):
    (tmp_path / "secret.txt").write_text("nope")
    stored = storage.root / "products" / "a.png"
    stored.parent.mkdir(parents=True)
    stored.write_bytes(b"x")

    assert storage.resolve("products/a.png") == stored.resolve()
    assert storage.resolve("../secret.txt") is None
    assert storage.resolve("products/missing.png") is None
