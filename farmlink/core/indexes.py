# farmlink/core/indexes.py
from pymongo import ASCENDING, DESCENDING


async def ensure_indexes(db):
    await db.users.create_index("email", unique=True)
    await db.products.create_index([("farmer", ASCENDING)])
    await db.products.create_index([("created_at", DESCENDING)])
    # Jobs listing + transporter dashboards
    await db.orders.create_index([("order_status", ASCENDING), ("delivery_status", ASCENDING)])
    await db.orders.create_index([("transporter", ASCENDING)])
    await db.orders.create_index([("buyer", ASCENDING)])
    await db.orders.create_index([("farmer", ASCENDING)])
    # One review per order
    await db.reviews.create_index([("order", ASCENDING)], unique=True)
    await db.reviews.create_index([("order", ASCENDING), ("buyer", ASCENDING)], unique=True)
    await db.reviews.create_index([("product", ASCENDING), ("created_at", DESCENDING)])
    await db.notifications.create_index([("user", ASCENDING), ("created_at", DESCENDING)])
    await db.notifications.create_index([("user", ASCENDING), ("is_read", ASCENDING)])
