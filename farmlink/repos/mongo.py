# farmlink/repos/mongo.py
import re
from typing import Any, Dict, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from farmlink.core.errors import Conflict, DuplicateReview
from farmlink.repos.base import REVIEW_SORTS, empty_rating_stats, new_id, utcnow


def _status_cond(wanted):
    if isinstance(wanted, str):
        return wanted
    return {"$in": list(wanted)}


def _order_query(buyer=None, farmer=None, transporter=None, order_status=None,
                 delivery_status=None, unassigned=False, districts=None, rated=None) -> dict:
    q: Dict[str, Any] = {}
    if buyer:
        q["buyer"] = buyer
    if farmer:
        q["farmer"] = farmer
    if transporter:
        q["transporter"] = transporter
    if unassigned:
        q["transporter"] = None
    if order_status is not None:
        q["order_status"] = _status_cond(order_status)
    if delivery_status is not None:
        q["delivery_status"] = _status_cond(delivery_status)
    if districts:
        q["delivery_address.district"] = {
            "$in": [re.compile(re.escape(d), re.IGNORECASE) for d in districts]
        }
    if rated is not None:
        q["transporter_rating"] = {"$ne": None} if rated else None
    return q


class MongoRepo:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _by_ids(self, col, ids: Sequence[str]) -> Dict[str, dict]:
        cur = col.find({"_id": {"$in": list(set(ids))}})
        return {d["_id"]: d async for d in cur}

    # Users
    async def create_user(self, doc: dict) -> dict:
        doc = {**doc, "email": doc["email"].lower()}
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        try:
            await self.db.users.insert_one(doc)
        except DuplicateKeyError:
            raise Conflict("Email already registered")
        return doc

    async def find_user(self, user_id: str) -> Optional[dict]:
        return await self.db.users.find_one({"_id": user_id})

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        return await self.db.users.find_one({"email": (email or "").lower()})

    async def find_users(self, ids: Sequence[str]) -> Dict[str, dict]:
        return await self._by_ids(self.db.users, ids)

    async def update_user(self, user_id: str, fields: dict) -> Optional[dict]:
        return await self.db.users.find_one_and_update(
            {"_id": user_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )

    # Products
    async def insert_product(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        await self.db.products.insert_one(doc)
        return doc

    async def find_product(self, product_id: str) -> Optional[dict]:
        return await self.db.products.find_one({"_id": product_id})

    async def find_products(self, ids: Sequence[str]) -> Dict[str, dict]:
        return await self._by_ids(self.db.products, ids)

    async def list_products(self, farmer=None, category=None, district=None, search=None,
                            available_only=False) -> List[dict]:
        q: Dict[str, Any] = {}
        if farmer:
            q["farmer"] = farmer
        if category:
            q["category"] = re.compile(f"^{re.escape(category)}$", re.IGNORECASE)
        if district:
            q["location.district"] = re.compile(re.escape(district), re.IGNORECASE)
        if search:
            q["crop_name"] = re.compile(re.escape(search), re.IGNORECASE)
        if available_only:
            q["status"] = "available"
            q["quantity"] = {"$gt": 0}
        cur = self.db.products.find(q).sort("created_at", -1)
        return [p async for p in cur]

    async def update_product(self, product_id: str, fields: dict) -> Optional[dict]:
        return await self.db.products.find_one_and_update(
            {"_id": product_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )

    async def adjust_product_quantity(self, product_id: str, delta: float) -> Optional[dict]:
        q: Dict[str, Any] = {"_id": product_id}
        if delta < 0:
            q["quantity"] = {"$gte": -delta}
        doc = await self.db.products.find_one_and_update(
            q, {"$inc": {"quantity": delta}}, return_document=ReturnDocument.AFTER
        )
        if doc:
            status = "available" if float(doc.get("quantity") or 0) > 0 else "sold_out"
            if doc.get("status") != status:
                await self.db.products.update_one({"_id": product_id}, {"$set": {"status": status}})
                doc["status"] = status
        return doc

    async def push_product_photo(self, product_id: str, url: str) -> Optional[dict]:
        return await self.db.products.find_one_and_update(
            {"_id": product_id}, {"$push": {"photos": url}}, return_document=ReturnDocument.AFTER
        )

    async def delete_product(self, product_id: str) -> bool:
        res = await self.db.products.delete_one({"_id": product_id})
        return res.deleted_count > 0

    async def product_ids_for_farmer(self, farmer_id: str) -> List[str]:
        cur = self.db.products.find({"farmer": farmer_id}, {"_id": 1})
        return [p["_id"] async for p in cur]

    # Orders
    async def insert_order(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        doc.setdefault("version", 1)
        await self.db.orders.insert_one(doc)
        return doc

    async def find_order(self, order_id: str) -> Optional[dict]:
        return await self.db.orders.find_one({"_id": order_id})

    async def list_orders(self, **filters: Any) -> List[dict]:
        cur = self.db.orders.find(_order_query(**filters)).sort("created_at", -1)
        return [o async for o in cur]

    async def count_orders(self, **filters: Any) -> int:
        return await self.db.orders.count_documents(_order_query(**filters))

    async def update_order(self, order_id, fields, expected=None, history=None) -> Optional[dict]:
        update: Dict[str, Any] = {
            "$set": {**fields, "updated_at": utcnow()},
            "$inc": {"version": 1},
        }
        if history:
            update["$push"] = {"status_history": history}
        return await self.db.orders.find_one_and_update(
            {"_id": order_id, **(expected or {})},
            update,
            return_document=ReturnDocument.AFTER,
        )

    async def atomic_assign(self, order_id, transporter_id, fields, history) -> Optional[dict]:
        return await self.update_order(
            order_id,
            {**fields, "transporter": transporter_id, "delivery_status": "assigned"},
            expected={"transporter": None, "delivery_status": "not_assigned", "order_status": "confirmed"},
            history=history,
        )

    # Reviews
    async def insert_review(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        try:
            await self.db.reviews.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateReview()
        return doc

    async def find_review(self, review_id: str) -> Optional[dict]:
        return await self.db.reviews.find_one({"_id": review_id})

    async def find_review_by_order(self, order_id: str) -> Optional[dict]:
        return await self.db.reviews.find_one({"order": order_id})

    @staticmethod
    def _review_query(product=None, buyer=None) -> dict:
        q: Dict[str, Any] = {"is_visible": True}
        if product:
            q["product"] = product
        if buyer:
            q["buyer"] = buyer
        return q

    async def list_reviews(self, product=None, buyer=None, sort_by="newest", skip=0, limit=10) -> List[dict]:
        field, direction = REVIEW_SORTS.get(sort_by, REVIEW_SORTS["newest"])
        cur = (
            self.db.reviews.find(self._review_query(product, buyer))
            .sort(field, direction)
            .skip(skip)
            .limit(limit)
        )
        return [r async for r in cur]

    async def count_reviews(self, product=None, buyer=None) -> int:
        return await self.db.reviews.count_documents(self._review_query(product, buyer))

    async def update_review(self, review_id: str, fields: dict) -> Optional[dict]:
        return await self.db.reviews.find_one_and_update(
            {"_id": review_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )

    async def rating_stats(self, product_ids: Sequence[str]) -> dict:
        pipeline = [
            {"$match": {"product": {"$in": list(product_ids)}, "is_visible": True}},
            {"$group": {
                "_id": None,
                "average_rating": {"$avg": "$rating"},
                "total_reviews": {"$sum": 1},
                "ratings": {"$push": "$rating"},
            }},
        ]
        stats = empty_rating_stats()
        async for row in self.db.reviews.aggregate(pipeline):
            stats["average_rating"] = row.get("average_rating") or 0
            stats["total_reviews"] = row.get("total_reviews") or 0
            for rating in row.get("ratings", []):
                if 1 <= rating <= 5:
                    stats["rating_distribution"][int(rating)] += 1
        return stats

    # Notifications
    async def insert_notification(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        await self.db.notifications.insert_one(doc)
        return doc

    async def find_notification(self, notification_id: str) -> Optional[dict]:
        return await self.db.notifications.find_one({"_id": notification_id})

    async def list_notifications(self, user, unread_only=False, skip=0, limit=50) -> List[dict]:
        q: Dict[str, Any] = {"user": user}
        if unread_only:
            q["is_read"] = False
        cur = self.db.notifications.find(q).sort("created_at", -1).skip(skip).limit(limit)
        return [n async for n in cur]

    async def count_notifications(self, user, unread_only=False) -> int:
        q: Dict[str, Any] = {"user": user}
        if unread_only:
            q["is_read"] = False
        return await self.db.notifications.count_documents(q)

    async def mark_notification_read(self, notification_id: str) -> Optional[dict]:
        # one-way: only unread documents get a fresh read_at
        await self.db.notifications.update_one(
            {"_id": notification_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": utcnow()}},
        )
        return await self.find_notification(notification_id)

    async def mark_all_read(self, user: str) -> int:
        res = await self.db.notifications.update_many(
            {"user": user, "is_read": False},
            {"$set": {"is_read": True, "read_at": utcnow()}},
        )
        return res.modified_count

    async def delete_notification(self, notification_id: str) -> bool:
        res = await self.db.notifications.delete_one({"_id": notification_id})
        return res.deleted_count > 0
