# farmlink/services/orders.py
import logging
from typing import Optional

from farmlink.core.config import settings
from farmlink.core.errors import InvalidTransition, NotFound, Unauthorized, ValidationFailed
from farmlink.core.states import can_change_order_status
from farmlink.repos.base import new_id, utcnow
from farmlink.services import notifications
from farmlink.services.views import compose_order, compose_orders

logger = logging.getLogger(__name__)

PARTY_FIELD = {"buyer": "buyer", "farmer": "farmer", "transporter": "transporter"}


def price_breakdown(price_per_unit: float, quantity: float) -> dict:
    subtotal = round(float(price_per_unit) * float(quantity), 2)
    transport_fee = round(settings.transport_fee, 2)
    platform_fee = round(subtotal * settings.platform_fee_rate, 2)
    return {
        "subtotal": subtotal,
        "transport_fee": transport_fee,
        "platform_fee": platform_fee,
        "total": round(subtotal + transport_fee + platform_fee, 2),
    }


def _order_number(oid: str) -> str:
    return f"ORD-{utcnow():%Y%m%d}-{oid[-6:].upper()}"


async def checkout(repo, buyer: dict, product_id: str, quantity: float, delivery_address: dict,
                   notes: Optional[str] = None) -> dict:
    if quantity <= 0:
        raise ValidationFailed("Quantity must be greater than zero")

    product = await repo.find_product(product_id)
    if not product:
        raise NotFound("Product", product_id)
    if product.get("status") != "available":
        raise ValidationFailed("This product is not available for ordering")

    # reserve stock first; fails if someone else took it
    reserved = await repo.adjust_product_quantity(product_id, -quantity)
    if reserved is None:
        raise ValidationFailed(
            f"Only {product.get('quantity', 0):g} {product.get('unit') or 'units'} available",
            available=product.get("quantity", 0),
        )

    now = utcnow()
    oid = new_id()
    doc = {
        "_id": oid,
        "order_number": _order_number(oid),
        "buyer": buyer["_id"],
        "farmer": product["farmer"],
        "product": product_id,
        "transporter": None,
        "quantity": quantity,
        "notes": notes,
        "order_status": "pending",
        "delivery_status": "not_assigned",
        "delivery_address": delivery_address,
        "pickup_photo": None,
        "delivery_proof_photo": None,
        "status_history": [{"status": "pending", "timestamp": now, "note": "Order placed", "photo": None}],
        "price_breakdown": price_breakdown(product["price_per_unit"], quantity),
        "estimated_delivery_date": None,
        "actual_delivery_date": None,
        "transporter_rating": None,
        "version": 1,
        "created_at": now,
        "updated_at": now,
    }
    order = await repo.insert_order(doc)
    logger.info("Order %s placed by buyer %s for product %s", oid, buyer["_id"], product_id)

    await notifications.emit(repo, "order_placed", order, order["farmer"], buyer=buyer["_id"])
    return await compose_order(repo, order)


def ensure_participant(order: dict, user: dict) -> None:
    if user.get("role") == "admin":
        return
    field = PARTY_FIELD.get(user.get("role"))
    if not field or order.get(field) != user["_id"]:
        raise Unauthorized("Not authorized to access this order")


async def get_order(repo, order_id: str, user: dict) -> dict:
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    ensure_participant(order, user)
    return await compose_order(repo, order)


async def my_orders(repo, user: dict) -> dict:
    field = PARTY_FIELD.get(user.get("role"))
    if not field:
        return {"count": 0, "data": []}
    orders = await repo.list_orders(**{field: user["_id"]})
    data = await compose_orders(repo, orders)
    return {"count": len(data), "data": data}


async def change_order_status(repo, order_id: str, user: dict, status: str,
                              note: Optional[str] = None) -> dict:
    """Farmer confirms/cancels a pending order; the buyer may cancel it while pending."""
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    ensure_participant(order, user)

    current = order.get("order_status")
    if not can_change_order_status(current, status, user.get("role")):
        raise InvalidTransition(current, status)

    updated = await repo.update_order(
        order_id,
        {"order_status": status},
        expected={"version": order.get("version"), "order_status": current},
        history={
            "status": status,
            "timestamp": utcnow(),
            "note": note or f"Order {status} by {user.get('role')}",
            "photo": None,
        },
    )
    if updated is None:
        fresh = await repo.find_order(order_id) or {}
        raise InvalidTransition(fresh.get("order_status", current), status)

    if status == "cancelled":
        await repo.adjust_product_quantity(order["product"], float(order.get("quantity") or 0))
        recipient = order["buyer"] if user.get("role") == "farmer" else order["farmer"]
        await notifications.emit(repo, "order_cancelled", updated, recipient, by=user["_id"])
    else:
        await notifications.emit(repo, "order_confirmed", updated, order["buyer"])

    logger.info("Order %s status %s -> %s by %s", order_id, current, status, user["_id"])
    return await compose_order(repo, updated)


async def rate_transporter(repo, order_id: str, buyer: dict, rating: int,
                           comment: Optional[str] = None) -> dict:
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    if order.get("buyer") != buyer["_id"]:
        raise Unauthorized("Not authorized to rate this delivery")
    if order.get("delivery_status") != "delivered" or not order.get("transporter"):
        raise ValidationFailed("You can only rate a transporter after delivery")
    if not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")

    updated = await repo.update_order(
        order_id,
        {"transporter_rating": {"rating": rating, "comment": comment, "rated_at": utcnow()}},
        expected={"transporter_rating": None},
    )
    if updated is None:
        raise ValidationFailed("You have already rated this delivery")
    return await compose_order(repo, updated)
