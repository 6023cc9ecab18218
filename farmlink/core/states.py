ORDER_STATES = ["pending", "confirmed", "completed", "cancelled"]

DELIVERY_STATES = ["not_assigned", "assigned", "picked", "in_transit", "delivered"]

# statuses a transporter may request through the status endpoint
TRANSPORTER_STATES = ["picked", "in_transit", "delivered"]

TRANSITIONS = {
    "assigned":   ["picked"],
    "picked":     ["in_transit"],
    "in_transit": ["delivered"],
}

# farmer/buyer driven order status changes
ORDER_TRANSITIONS = {
    ("pending", "confirmed"): {"roles": ["farmer"]},
    ("pending", "cancelled"): {"roles": ["farmer", "buyer"]},
}

ACTIVE_DELIVERY_STATES = ["assigned", "picked", "in_transit"]


def can_transition(src: str, dst: str) -> bool:
    return dst in TRANSITIONS.get(src, [])


def can_change_order_status(src: str, dst: str, role: str) -> bool:
    rule = ORDER_TRANSITIONS.get((src, dst))
    if not rule:
        return False
    return role in rule["roles"]
