# farmlink/services/reviews.py
"""Product reviews. Ratings are always recomputed from the full visible review set."""
import logging
from math import ceil
from typing import Dict, Optional

from farmlink.core.errors import DuplicateReview, NotFound, Unauthorized, ValidationFailed
from farmlink.repos.base import utcnow
from farmlink.services.views import compose_reviews

logger = logging.getLogger(__name__)

ASPECTS = ("quality", "freshness", "packaging", "value")
MAX_COMMENT = 1000


def _is_reviewable(order: dict) -> bool:
    return order.get("order_status") == "completed" or order.get("delivery_status") == "delivered"


async def recompute_product_rating(repo, product_id: str) -> dict:
    stats = await repo.rating_stats([product_id])
    await repo.update_product(product_id, {
        "average_rating": stats["average_rating"],
        "review_count": stats["total_reviews"],
    })
    return stats


async def recompute_farmer_rating(repo, farmer_id: str) -> dict:
    product_ids = await repo.product_ids_for_farmer(farmer_id)
    stats = await repo.rating_stats(product_ids)
    await repo.update_user(farmer_id, {
        "rating": {"average": stats["average_rating"], "count": stats["total_reviews"]},
    })
    return stats


async def _recompute(repo, product_id: str, farmer_id: Optional[str]) -> None:
    await recompute_product_rating(repo, product_id)
    if farmer_id:
        await recompute_farmer_rating(repo, farmer_id)


def _validate(rating: int, comment: str, aspects: Optional[Dict[str, int]]) -> Dict[str, int]:
    if not 1 <= rating <= 5:
        raise ValidationFailed("Rating must be between 1 and 5")
    if not (comment or "").strip():
        raise ValidationFailed("Review comment is required")
    if len(comment) > MAX_COMMENT:
        raise ValidationFailed(f"Review comment cannot exceed {MAX_COMMENT} characters")
    clean = {}
    for name, value in (aspects or {}).items():
        if name not in ASPECTS:
            raise ValidationFailed(f"Unknown review aspect '{name}'")
        if value is None:
            continue
        if not 1 <= value <= 5:
            raise ValidationFailed(f"Aspect '{name}' must be between 1 and 5")
        clean[name] = value
    return clean


async def create_review(repo, buyer: dict, product_id: str, order_id: str, rating: int,
                        comment: str, aspects: Optional[Dict[str, int]] = None) -> dict:
    aspects = _validate(rating, comment, aspects)

    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    if order.get("buyer") != buyer["_id"]:
        raise Unauthorized("Not authorized to review this order")
    if not _is_reviewable(order):
        raise ValidationFailed("You can only review orders that have been completed or delivered")
    if order.get("product") != product_id:
        raise ValidationFailed("Product does not match the order")
    if await repo.find_review_by_order(order_id):
        raise DuplicateReview()

    review = await repo.insert_review({
        "buyer": buyer["_id"],
        "product": product_id,
        "order": order_id,
        "rating": rating,
        "comment": comment.strip(),
        "aspects": aspects,
        "is_verified": True,
        "helpful_count": 0,
        "is_visible": True,
        "created_at": utcnow(),
    })
    await _recompute(repo, product_id, order.get("farmer"))
    logger.info("Review %s created for order %s (rating %s)", review["_id"], order_id, rating)
    return (await compose_reviews(repo, [review]))[0]


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit) if limit else 0}


async def product_reviews(repo, product_id: str, page: int = 1, limit: int = 10,
                          sort_by: str = "newest") -> dict:
    if not await repo.find_product(product_id):
        raise NotFound("Product", product_id)
    rows = await repo.list_reviews(product=product_id, sort_by=sort_by, skip=(page - 1) * limit, limit=limit)
    total = await repo.count_reviews(product=product_id)
    return {
        "data": await compose_reviews(repo, rows),
        "pagination": _pagination(page, limit, total),
        "stats": await repo.rating_stats([product_id]),
    }


async def buyer_reviews(repo, buyer_id: str, page: int = 1, limit: int = 10) -> dict:
    rows = await repo.list_reviews(buyer=buyer_id, skip=(page - 1) * limit, limit=limit)
    total = await repo.count_reviews(buyer=buyer_id)
    return {"data": await compose_reviews(repo, rows), "pagination": _pagination(page, limit, total)}


async def check_can_review(repo, order_id: str, buyer: dict) -> dict:
    order = await repo.find_order(order_id)
    if not order:
        raise NotFound("Order", order_id)
    if order.get("buyer") != buyer["_id"]:
        raise Unauthorized("Not authorized")
    existing = await repo.find_review_by_order(order_id)
    return {
        "can_review": _is_reviewable(order) and not existing,
        "has_reviewed": existing is not None,
        "order_status": order.get("order_status"),
        "delivery_status": order.get("delivery_status"),
    }


async def set_visibility(repo, review_id: str, user: dict, is_visible: bool) -> dict:
    review = await repo.find_review(review_id)
    if not review:
        raise NotFound("Review", review_id)
    if user.get("role") != "admin" and review["buyer"] != user["_id"]:
        raise Unauthorized("Not authorized to change this review")

    updated = await repo.update_review(review_id, {"is_visible": is_visible})
    product = await repo.find_product(review["product"])
    await _recompute(repo, review["product"], (product or {}).get("farmer"))
    return (await compose_reviews(repo, [updated]))[0]
