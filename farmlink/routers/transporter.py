# farmlink/routers/transporter.py
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from farmlink.core.errors import NotFound
from farmlink.core.security import require_roles
from farmlink.deps import get_repo
from farmlink.schemas import DeliveryStatusIn
from farmlink.services import delivery
from farmlink.services.storage import get_storage

router = APIRouter(prefix="/api/transporter", tags=["transporter"])

transporter_only = require_roles("transporter")


@router.get("/stats")
async def stats(user=Depends(transporter_only), repo=Depends(get_repo)):
    return {"ok": True, "data": await delivery.transporter_stats(repo, user)}


@router.get("/jobs")
async def available_jobs(district: Optional[str] = None, user=Depends(transporter_only), repo=Depends(get_repo)):
    return await delivery.list_available_jobs(repo, user, district=district)


@router.get("/my-deliveries")
async def my_deliveries(status: Optional[str] = None, user=Depends(transporter_only), repo=Depends(get_repo)):
    return await delivery.my_deliveries(repo, user, status=status)


@router.get("/jobs/{order_id}")
async def delivery_details(order_id: str, user=Depends(transporter_only), repo=Depends(get_repo)):
    return {"ok": True, "data": await delivery.get_delivery_details(repo, order_id, user)}


@router.post("/jobs/{order_id}/accept")
async def accept_job(order_id: str, user=Depends(transporter_only), repo=Depends(get_repo)):
    order = await delivery.assign_transporter(repo, order_id, user)
    return {"ok": True, "message": "Job accepted successfully", "data": order}


@router.put("/jobs/{order_id}/status")
async def update_delivery_status(order_id: str, body: DeliveryStatusIn,
                                 user=Depends(transporter_only), repo=Depends(get_repo)):
    order = await delivery.update_status(repo, order_id, user, body.status, note=body.note, photo=body.photo)
    return {"ok": True, "message": f"Delivery status updated to {body.status}", "data": order}


@router.post("/jobs/{order_id}/photo")
async def upload_delivery_photo(order_id: str, photo: UploadFile = File(...),
                                user=Depends(transporter_only), repo=Depends(get_repo),
                                storage=Depends(get_storage)):
    if not await repo.find_order(order_id):
        raise NotFound("Order", order_id)
    url = await storage.save(photo, "deliveries", field="photo")
    return {"ok": True, "data": {"photo_url": url}}
