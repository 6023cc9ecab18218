# farmlink/routers/orders.py
from fastapi import APIRouter, Depends

from farmlink.core.security import get_current_user, require_roles
from farmlink.deps import get_repo
from farmlink.schemas import CheckoutIn, OrderStatusIn, RateTransporterIn
from farmlink.services import orders

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", status_code=201)
async def checkout(body: CheckoutIn, buyer=Depends(require_roles("buyer")), repo=Depends(get_repo)):
    order = await orders.checkout(
        repo, buyer, body.product_id, body.quantity, body.delivery_address.model_dump(), notes=body.notes
    )
    return {"ok": True, "message": "Order placed successfully", "data": order}


@router.get("/my-orders")
async def my_orders(user=Depends(get_current_user), repo=Depends(get_repo)):
    return await orders.my_orders(repo, user)


@router.get("/{order_id}")
async def get_order(order_id: str, user=Depends(get_current_user), repo=Depends(get_repo)):
    return {"ok": True, "data": await orders.get_order(repo, order_id, user)}


@router.put("/{order_id}/status")
async def change_status(order_id: str, body: OrderStatusIn,
                        user=Depends(require_roles("farmer", "buyer")), repo=Depends(get_repo)):
    order = await orders.change_order_status(repo, order_id, user, body.status, note=body.note)
    return {"ok": True, "message": f"Order {body.status}", "data": order}


@router.post("/{order_id}/rate-transporter")
async def rate_transporter(order_id: str, body: RateTransporterIn,
                           buyer=Depends(require_roles("buyer")), repo=Depends(get_repo)):
    order = await orders.rate_transporter(repo, order_id, buyer, body.rating, body.comment)
    return {"ok": True, "data": order}
