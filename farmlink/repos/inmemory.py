# farmlink/repos/inmemory.py
import asyncio
import copy
from typing import Any, Dict, List, Optional, Sequence

from farmlink.core.errors import Conflict, DuplicateReview
from farmlink.repos.base import REVIEW_SORTS, StatusFilter, empty_rating_stats, new_id, utcnow


def _newest_first(docs) -> List[dict]:
    # stable sort keeps later inserts ahead on equal timestamps
    return sorted(reversed(list(docs)), key=lambda d: d["created_at"], reverse=True)


def _matches_status(value: Optional[str], wanted: StatusFilter) -> bool:
    if wanted is None:
        return True
    if isinstance(wanted, str):
        return value == wanted
    return value in wanted


def _district_matches(order: dict, districts: Optional[Sequence[str]]) -> bool:
    if not districts:
        return True
    district = ((order.get("delivery_address") or {}).get("district") or "").lower()
    return any(d.lower() in district for d in districts)


class InMemoryRepo:
    """Dict-backed repository. Returns copies so callers never mutate stored state."""

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.users_by_email: Dict[str, str] = {}
        self.products: Dict[str, dict] = {}
        self.orders: Dict[str, dict] = {}
        self.reviews: Dict[str, dict] = {}
        self.notifications: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

    # Users
    async def create_user(self, doc: dict) -> dict:
        email = doc["email"].lower()
        if email in self.users_by_email:
            raise Conflict("Email already registered")
        doc = {**doc, "email": email}
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        self.users[doc["_id"]] = doc
        self.users_by_email[email] = doc["_id"]
        return copy.deepcopy(doc)

    async def find_user(self, user_id: str) -> Optional[dict]:
        doc = self.users.get(user_id)
        return copy.deepcopy(doc) if doc else None

    async def find_user_by_email(self, email: str) -> Optional[dict]:
        uid = self.users_by_email.get((email or "").lower())
        return await self.find_user(uid) if uid else None

    async def find_users(self, ids: Sequence[str]) -> Dict[str, dict]:
        return {i: copy.deepcopy(self.users[i]) for i in set(ids) if i in self.users}

    async def update_user(self, user_id: str, fields: dict) -> Optional[dict]:
        if user_id not in self.users:
            return None
        self.users[user_id].update(copy.deepcopy(fields))
        return await self.find_user(user_id)

    # Products
    async def insert_product(self, doc: dict) -> dict:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        self.products[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def find_product(self, product_id: str) -> Optional[dict]:
        doc = self.products.get(product_id)
        return copy.deepcopy(doc) if doc else None

    async def find_products(self, ids: Sequence[str]) -> Dict[str, dict]:
        return {i: copy.deepcopy(self.products[i]) for i in set(ids) if i in self.products}

    async def list_products(self, farmer=None, category=None, district=None, search=None,
                            available_only=False) -> List[dict]:
        out = []
        for p in self.products.values():
            if farmer and p.get("farmer") != farmer:
                continue
            if category and (p.get("category") or "").lower() != category.lower():
                continue
            if district and district.lower() not in ((p.get("location") or {}).get("district") or "").lower():
                continue
            if search and search.lower() not in (p.get("crop_name") or "").lower():
                continue
            if available_only and (p.get("status") != "available" or float(p.get("quantity") or 0) <= 0):
                continue
            out.append(copy.deepcopy(p))
        return _newest_first(out)

    async def update_product(self, product_id: str, fields: dict) -> Optional[dict]:
        if product_id not in self.products:
            return None
        self.products[product_id].update(copy.deepcopy(fields))
        return await self.find_product(product_id)

    async def adjust_product_quantity(self, product_id: str, delta: float) -> Optional[dict]:
        async with self._lock:
            p = self.products.get(product_id)
            if not p:
                return None
            qty = float(p.get("quantity") or 0) + delta
            if qty < 0:
                return None
            p["quantity"] = qty
            p["status"] = "available" if qty > 0 else "sold_out"
            return copy.deepcopy(p)

    async def push_product_photo(self, product_id: str, url: str) -> Optional[dict]:
        async with self._lock:
            p = self.products.get(product_id)
            if not p:
                return None
            p.setdefault("photos", []).append(url)
            return copy.deepcopy(p)

    async def delete_product(self, product_id: str) -> bool:
        return self.products.pop(product_id, None) is not None

    async def product_ids_for_farmer(self, farmer_id: str) -> List[str]:
        return [pid for pid, p in self.products.items() if p.get("farmer") == farmer_id]

    # Orders
    async def insert_order(self, doc: dict) -> dict:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        doc.setdefault("version", 1)
        self.orders[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def find_order(self, order_id: str) -> Optional[dict]:
        doc = self.orders.get(order_id)
        return copy.deepcopy(doc) if doc else None

    def _filter_orders(self, buyer=None, farmer=None, transporter=None, order_status=None,
                       delivery_status=None, unassigned=False, districts=None,
                       rated=None) -> List[dict]:
        out = []
        for o in self.orders.values():
            if buyer and o.get("buyer") != buyer:
                continue
            if farmer and o.get("farmer") != farmer:
                continue
            if transporter and o.get("transporter") != transporter:
                continue
            if unassigned and o.get("transporter") is not None:
                continue
            if not _matches_status(o.get("order_status"), order_status):
                continue
            if not _matches_status(o.get("delivery_status"), delivery_status):
                continue
            if not _district_matches(o, districts):
                continue
            if rated is not None and (o.get("transporter_rating") is not None) != rated:
                continue
            out.append(o)
        return out

    async def list_orders(self, **filters: Any) -> List[dict]:
        return _newest_first(copy.deepcopy(o) for o in self._filter_orders(**filters))

    async def count_orders(self, **filters: Any) -> int:
        return len(self._filter_orders(**filters))

    async def update_order(self, order_id, fields, expected=None, history=None) -> Optional[dict]:
        async with self._lock:
            o = self.orders.get(order_id)
            if not o:
                return None
            for k, v in (expected or {}).items():
                if o.get(k) != v:
                    return None
            o.update(copy.deepcopy(fields))
            if history:
                o.setdefault("status_history", []).append(copy.deepcopy(history))
            o["version"] = o.get("version", 1) + 1
            o["updated_at"] = utcnow()
            return copy.deepcopy(o)

    async def atomic_assign(self, order_id, transporter_id, fields, history) -> Optional[dict]:
        return await self.update_order(
            order_id,
            {**fields, "transporter": transporter_id, "delivery_status": "assigned"},
            expected={"transporter": None, "delivery_status": "not_assigned", "order_status": "confirmed"},
            history=history,
        )

    # Reviews
    async def insert_review(self, doc: dict) -> dict:
        async with self._lock:
            for r in self.reviews.values():
                if r["order"] == doc["order"] or (r["order"], r["buyer"]) == (doc["order"], doc["buyer"]):
                    raise DuplicateReview()
            doc = copy.deepcopy(doc)
            doc.setdefault("_id", new_id())
            doc.setdefault("created_at", utcnow())
            self.reviews[doc["_id"]] = doc
            return copy.deepcopy(doc)

    async def find_review(self, review_id: str) -> Optional[dict]:
        doc = self.reviews.get(review_id)
        return copy.deepcopy(doc) if doc else None

    async def find_review_by_order(self, order_id: str) -> Optional[dict]:
        for r in self.reviews.values():
            if r["order"] == order_id:
                return copy.deepcopy(r)
        return None

    def _visible_reviews(self, product=None, buyer=None) -> List[dict]:
        return [
            r for r in self.reviews.values()
            if r.get("is_visible", True)
            and (product is None or r["product"] == product)
            and (buyer is None or r["buyer"] == buyer)
        ]

    async def list_reviews(self, product=None, buyer=None, sort_by="newest", skip=0, limit=10) -> List[dict]:
        field, direction = REVIEW_SORTS.get(sort_by, REVIEW_SORTS["newest"])
        rows = _newest_first(self._visible_reviews(product, buyer))
        if field != "created_at" or direction != -1:
            rows = sorted(rows, key=lambda r: r[field], reverse=direction == -1)
        return [copy.deepcopy(r) for r in rows[skip:skip + limit]]

    async def count_reviews(self, product=None, buyer=None) -> int:
        return len(self._visible_reviews(product, buyer))

    async def update_review(self, review_id: str, fields: dict) -> Optional[dict]:
        if review_id not in self.reviews:
            return None
        self.reviews[review_id].update(copy.deepcopy(fields))
        return await self.find_review(review_id)

    async def rating_stats(self, product_ids: Sequence[str]) -> dict:
        ids = set(product_ids)
        ratings = [r["rating"] for r in self.reviews.values() if r.get("is_visible", True) and r["product"] in ids]
        stats = empty_rating_stats()
        if not ratings:
            return stats
        stats["average_rating"] = sum(ratings) / len(ratings)
        stats["total_reviews"] = len(ratings)
        for rating in ratings:
            if 1 <= rating <= 5:
                stats["rating_distribution"][int(rating)] += 1
        return stats

    # Notifications
    async def insert_notification(self, doc: dict) -> dict:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", new_id())
        doc.setdefault("created_at", utcnow())
        self.notifications[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def find_notification(self, notification_id: str) -> Optional[dict]:
        doc = self.notifications.get(notification_id)
        return copy.deepcopy(doc) if doc else None

    def _user_notifications(self, user: str, unread_only: bool) -> List[dict]:
        return [
            n for n in self.notifications.values()
            if n["user"] == user and (not unread_only or not n.get("is_read"))
        ]

    async def list_notifications(self, user, unread_only=False, skip=0, limit=50) -> List[dict]:
        rows = _newest_first(self._user_notifications(user, unread_only))
        return [copy.deepcopy(n) for n in rows[skip:skip + limit]]

    async def count_notifications(self, user, unread_only=False) -> int:
        return len(self._user_notifications(user, unread_only))

    async def mark_notification_read(self, notification_id: str) -> Optional[dict]:
        n = self.notifications.get(notification_id)
        if not n:
            return None
        if not n.get("is_read"):
            n["is_read"] = True
            n["read_at"] = utcnow()
        return copy.deepcopy(n)

    async def mark_all_read(self, user: str) -> int:
        now = utcnow()
        rows = self._user_notifications(user, unread_only=True)
        for n in rows:
            n["is_read"] = True
            n["read_at"] = now
        return len(rows)

    async def delete_notification(self, notification_id: str) -> bool:
        return self.notifications.pop(notification_id, None) is not None
