# farmlink/repos/base.py
"""Persistence interface shared by the Mongo and in-memory repositories.

Documents are plain dicts keyed by string ``_id``. Every order write bumps
``version``; ``update_order`` only applies when all ``expected`` fields still
hold, which is how assignment and status changes stay race free.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from bson import ObjectId


def new_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


StatusFilter = Union[str, Sequence[str], None]


class Repo(Protocol):
    # Users
    async def create_user(self, doc: dict) -> dict: ...
    async def find_user(self, user_id: str) -> Optional[dict]: ...
    async def find_user_by_email(self, email: str) -> Optional[dict]: ...
    async def find_users(self, ids: Sequence[str]) -> Dict[str, dict]: ...
    async def update_user(self, user_id: str, fields: dict) -> Optional[dict]: ...

    # Products
    async def insert_product(self, doc: dict) -> dict: ...
    async def find_product(self, product_id: str) -> Optional[dict]: ...
    async def find_products(self, ids: Sequence[str]) -> Dict[str, dict]: ...
    async def list_products(self, farmer: Optional[str] = None, category: Optional[str] = None,
                            district: Optional[str] = None, search: Optional[str] = None,
                            available_only: bool = False) -> List[dict]: ...
    async def update_product(self, product_id: str, fields: dict) -> Optional[dict]: ...
    async def adjust_product_quantity(self, product_id: str, delta: float) -> Optional[dict]: ...
    async def push_product_photo(self, product_id: str, url: str) -> Optional[dict]: ...
    async def delete_product(self, product_id: str) -> bool: ...
    async def product_ids_for_farmer(self, farmer_id: str) -> List[str]: ...

    # Orders
    async def insert_order(self, doc: dict) -> dict: ...
    async def find_order(self, order_id: str) -> Optional[dict]: ...
    async def list_orders(self, **filters: Any) -> List[dict]: ...
    async def count_orders(self, **filters: Any) -> int: ...
    async def update_order(self, order_id: str, fields: dict, expected: Optional[dict] = None,
                           history: Optional[dict] = None) -> Optional[dict]: ...
    async def atomic_assign(self, order_id: str, transporter_id: str, fields: dict,
                            history: dict) -> Optional[dict]: ...

    # Reviews
    async def insert_review(self, doc: dict) -> dict: ...
    async def find_review(self, review_id: str) -> Optional[dict]: ...
    async def find_review_by_order(self, order_id: str) -> Optional[dict]: ...
    async def list_reviews(self, product: Optional[str] = None, buyer: Optional[str] = None,
                           sort_by: str = "newest", skip: int = 0, limit: int = 10) -> List[dict]: ...
    async def count_reviews(self, product: Optional[str] = None, buyer: Optional[str] = None) -> int: ...
    async def update_review(self, review_id: str, fields: dict) -> Optional[dict]: ...
    async def rating_stats(self, product_ids: Sequence[str]) -> dict: ...

    # Notifications
    async def insert_notification(self, doc: dict) -> dict: ...
    async def find_notification(self, notification_id: str) -> Optional[dict]: ...
    async def list_notifications(self, user: str, unread_only: bool = False,
                                 skip: int = 0, limit: int = 50) -> List[dict]: ...
    async def count_notifications(self, user: str, unread_only: bool = False) -> int: ...
    async def mark_notification_read(self, notification_id: str) -> Optional[dict]: ...
    async def mark_all_read(self, user: str) -> int: ...
    async def delete_notification(self, notification_id: str) -> bool: ...


REVIEW_SORTS = {
    "newest": ("created_at", -1),
    "oldest": ("created_at", 1),
    "highest": ("rating", -1),
    "lowest": ("rating", 1),
}


def empty_rating_stats() -> dict:
    return {
        "average_rating": 0,
        "total_reviews": 0,
        "rating_distribution": {5: 0, 4: 0, 3: 0, 2: 0, 1: 0},
    }
