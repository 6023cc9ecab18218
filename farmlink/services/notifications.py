# farmlink/services/notifications.py
import logging
from typing import Any, Dict, Optional

from farmlink.core.errors import ValidationFailed
from farmlink.repos.base import utcnow

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = [
    "order_placed",
    "order_confirmed",
    "order_cancelled",
    "order_completed",
    "order_delivered",
    "delivery_assigned",
    "delivery_picked",
    "delivery_in_transit",
    "delivery_payment",
    "payment_received",
    "product_approved",
    "product_rejected",
    "system_announcement",
]

# kind -> (title, message); formatted with the order document
TEMPLATES = {
    "order_placed": ("New order received", "Order {order_number} was placed for {quantity} units."),
    "order_confirmed": ("Order confirmed", "Your order {order_number} was confirmed by the farmer."),
    "order_cancelled": ("Order cancelled", "Order {order_number} was cancelled."),
    "order_completed": ("Order completed", "Order {order_number} has been completed."),
    "order_delivered": ("Order delivered", "Your order {order_number} has been delivered."),
    "delivery_assigned": ("Transporter assigned", "A transporter accepted delivery of order {order_number}."),
    "delivery_picked": ("Order picked up", "Your order {order_number} was picked up from the farm."),
    "delivery_in_transit": ("Order in transit", "Your order {order_number} is on its way."),
    "delivery_payment": ("Delivery payment", "You earned a transport fee for order {order_number}."),
}


async def create_notification(repo, user: str, type_: str, title: str, message: str,
                              order: Optional[str] = None, product: Optional[str] = None,
                              metadata: Optional[Dict[str, Any]] = None) -> dict:
    if type_ not in NOTIFICATION_TYPES:
        raise ValidationFailed(f"Unknown notification type '{type_}'", type=type_)
    doc = {
        "user": user,
        "type": type_,
        "title": title.strip(),
        "message": message.strip(),
        "related_order": order,
        "related_product": product,
        "is_read": False,
        "read_at": None,
        "metadata": metadata or {},
        "created_at": utcnow(),
    }
    return await repo.insert_notification(doc)


async def emit(repo, kind: str, order: dict, recipient: Optional[str], **metadata) -> Optional[dict]:
    """
    Best-effort notification for an order event. Runs after the order write
    has been committed; failures are logged and never reach the caller.
    """
    if not recipient:
        return None
    try:
        title, message = TEMPLATES[kind]
        values = {"order_number": order.get("order_number") or order.get("_id"), "quantity": order.get("quantity")}
        return await create_notification(
            repo,
            user=recipient,
            type_=kind,
            title=title,
            message=message.format(**values),
            order=order.get("_id"),
            product=order.get("product"),
            metadata=metadata,
        )
    except Exception:
        logger.exception("Failed to emit %s notification for order %s", kind, order.get("_id"))
        return None
