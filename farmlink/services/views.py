# farmlink/services/views.py
"""Explicit joins: order/review documents composed with the related user and product summaries."""
from typing import Dict, List, Optional

USER_FIELDS = ("name", "phone")
FARMER_FIELDS = ("name", "phone", "farm_location")
PRODUCT_FIELDS = ("crop_name", "photos", "location", "grade", "unit", "price_per_unit")


def _summary(doc: Optional[dict], fields) -> Optional[dict]:
    if not doc:
        return None
    return {"id": doc["_id"], **{f: doc.get(f) for f in fields}}


def public_doc(doc: dict) -> dict:
    out = {k: v for k, v in doc.items() if k != "_id"}
    return {"id": doc["_id"], **out}


def public_user(user: dict) -> dict:
    out = public_doc(user)
    out.pop("password_hash", None)
    return out


async def compose_orders(repo, orders: List[dict]) -> List[dict]:
    user_ids = set()
    product_ids = set()
    for o in orders:
        user_ids.update(x for x in (o.get("buyer"), o.get("farmer"), o.get("transporter")) if x)
        if o.get("product"):
            product_ids.add(o["product"])
    users: Dict[str, dict] = await repo.find_users(list(user_ids)) if user_ids else {}
    products: Dict[str, dict] = await repo.find_products(list(product_ids)) if product_ids else {}

    out = []
    for o in orders:
        view = public_doc(o)
        view["buyer"] = _summary(users.get(o.get("buyer")), USER_FIELDS)
        view["farmer"] = _summary(users.get(o.get("farmer")), FARMER_FIELDS)
        view["transporter"] = _summary(users.get(o.get("transporter")), USER_FIELDS)
        view["product"] = _summary(products.get(o.get("product")), PRODUCT_FIELDS)
        out.append(view)
    return out


async def compose_order(repo, order: dict) -> dict:
    return (await compose_orders(repo, [order]))[0]


async def compose_reviews(repo, reviews: List[dict]) -> List[dict]:
    buyers = await repo.find_users([r["buyer"] for r in reviews]) if reviews else {}
    products = await repo.find_products([r["product"] for r in reviews]) if reviews else {}
    out = []
    for r in reviews:
        view = public_doc(r)
        view["buyer"] = _summary(buyers.get(r["buyer"]), ("name", "avatar")) or {"id": r["buyer"]}
        view["product"] = _summary(products.get(r["product"]), ("crop_name", "photos")) or {"id": r["product"]}
        out.append(view)
    return out
