# farmlink/services/delivery.py
"""Transporter side of an order: job listing, acceptance and the delivery status workflow."""
import logging
from datetime import timedelta
from typing import Optional

from farmlink.core.errors import (
    AlreadyAssigned,
    InvalidStatus,
    InvalidTransition,
    NotAssigned,
    NotAvailable,
    NotFound,
    OutOfServiceArea,
    PhotoRequired,
    Unauthorized,
)
from farmlink.core.states import ACTIVE_DELIVERY_STATES, TRANSPORTER_STATES, can_transition
from farmlink.repos.base import utcnow
from farmlink.services import notifications
from farmlink.services.distance import MAX_DISTANCE_KM, evaluate_legs, rank_jobs
from farmlink.services.views import compose_order, compose_orders

logger = logging.getLogger(__name__)

ESTIMATED_DELIVERY_DAYS = 2

STATUS_NOTIFICATIONS = {
    "picked": "delivery_picked",
    "in_transit": "delivery_in_transit",
    "delivered": "order_delivered",
}

PHOTO_FIELDS = {
    "picked": "pickup_photo",
    "delivered": "delivery_proof_photo",
}

JOB_FILTER = {"order_status": "confirmed", "delivery_status": "not_assigned", "unassigned": True}


def _job_legs(view: dict):
    farmer = view.get("farmer") or {}
    return farmer.get("farm_location"), (view.get("delivery_address") or {}).get("location")


async def list_available_jobs(repo, transporter: dict, district: Optional[str] = None) -> dict:
    base = transporter.get("base_location")
    orders = await repo.list_orders(**JOB_FILTER, districts=[district] if district else None)
    views = await compose_orders(repo, orders)
    jobs = rank_jobs(base, views, _job_legs)
    return {
        "count": len(jobs),
        "data": jobs,
        "transporter_location": base,
        "max_service_radius": MAX_DISTANCE_KM,
    }


async def get_delivery_details(repo, order_id: str, transporter: dict) -> dict:
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    is_assigned = order.get("transporter") == transporter["_id"]
    is_available = order.get("delivery_status") == "not_assigned"
    if not is_assigned and not is_available:
        raise Unauthorized("You do not have access to this delivery")
    return await compose_order(repo, order)


async def assign_transporter(repo, order_id: str, transporter: dict) -> dict:
    """Accept a job: first accepted transporter wins, everyone else gets AlreadyAssigned."""
    transporter_id = transporter["_id"]
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    if order.get("transporter"):
        raise AlreadyAssigned()
    if order.get("delivery_status") != "not_assigned":
        raise NotAvailable(delivery_status=order.get("delivery_status"))
    if order.get("order_status") != "confirmed":
        raise NotAvailable("This order has not been confirmed by the farmer", order_status=order.get("order_status"))

    base = transporter.get("base_location")
    if base:
        farmer = await repo.find_user(order.get("farmer")) if order.get("farmer") else None
        legs = evaluate_legs(
            base,
            (farmer or {}).get("farm_location"),
            (order.get("delivery_address") or {}).get("location"),
        )
        if not legs["is_within_range"]:
            raise OutOfServiceArea(MAX_DISTANCE_KM, legs["distance_warning"])

    now = utcnow()
    updated = await repo.atomic_assign(
        order_id,
        transporter_id,
        {"estimated_delivery_date": now + timedelta(days=ESTIMATED_DELIVERY_DAYS)},
        history={
            "status": "assigned",
            "timestamp": now,
            "note": f"Assigned to transporter: {transporter.get('name')}",
            "photo": None,
        },
    )
    if updated is None:
        fresh = await repo.find_order(order_id) or {}
        if fresh.get("transporter"):
            raise AlreadyAssigned()
        raise NotAvailable(delivery_status=fresh.get("delivery_status"))

    logger.info("Order %s assigned to transporter %s", order_id, transporter_id)
    await notifications.emit(repo, "delivery_assigned", updated, updated.get("buyer"), transporter=transporter_id)
    return await compose_order(repo, updated)


async def update_status(repo, order_id: str, transporter: dict, status: str,
                        note: Optional[str] = None, photo: Optional[str] = None) -> dict:
    if status not in TRANSPORTER_STATES:
        raise InvalidStatus(status, TRANSPORTER_STATES)

    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    if order.get("transporter") != transporter["_id"]:
        raise NotAssigned()

    current = order.get("delivery_status")
    if not can_transition(current, status):
        raise InvalidTransition(current, status)
    if status == "picked" and not photo:
        raise PhotoRequired()

    now = utcnow()
    fields = {"delivery_status": status}
    if photo and status in PHOTO_FIELDS:
        fields[PHOTO_FIELDS[status]] = {
            "url": photo,
            "uploaded_at": now,
            "uploaded_by": transporter["_id"],
        }
    if status == "delivered":
        fields["order_status"] = "completed"
        fields["actual_delivery_date"] = now

    updated = await repo.update_order(
        order_id,
        fields,
        expected={"version": order.get("version"), "delivery_status": current},
        history={
            "status": status,
            "timestamp": now,
            "note": note or f"Status updated to {status}",
            "photo": photo or None,
        },
    )
    if updated is None:
        fresh = await repo.find_order(order_id) or {}
        raise InvalidTransition(fresh.get("delivery_status", current), status)

    if photo and status in PHOTO_FIELDS:
        logger.info("Saved %s for order %s: %s", PHOTO_FIELDS[status], order_id, photo)
    logger.info("Order %s delivery status %s -> %s", order_id, current, status)

    await notifications.emit(repo, STATUS_NOTIFICATIONS[status], updated, updated.get("buyer"))
    return await compose_order(repo, updated)


async def my_deliveries(repo, transporter: dict, status: Optional[str] = None) -> dict:
    orders = await repo.list_orders(transporter=transporter["_id"], delivery_status=status)
    data = await compose_orders(repo, orders)
    return {"count": len(data), "data": data}


async def transporter_stats(repo, transporter: dict) -> dict:
    tid = transporter["_id"]
    active = await repo.count_orders(transporter=tid, delivery_status=ACTIVE_DELIVERY_STATES)
    delivered = await repo.list_orders(transporter=tid, delivery_status="delivered")
    total_earnings = sum(
        float((o.get("price_breakdown") or {}).get("transport_fee") or 0) for o in delivered
    )

    # restricted to the transporter's districts when any are set
    districts = transporter.get("service_districts") or None
    pending = await repo.count_orders(**JOB_FILTER, districts=districts)

    rated = await repo.list_orders(transporter=tid, rated=True)
    ratings = [float(o["transporter_rating"].get("rating") or 0) for o in rated]
    average = sum(ratings) / len(ratings) if ratings else 0.0

    return {
        "active_deliveries": active,
        "completed_deliveries": len(delivered),
        "total_earnings": total_earnings,
        "pending_jobs": pending,
        "average_rating": round(average, 1),
        "total_ratings": len(ratings),
    }
