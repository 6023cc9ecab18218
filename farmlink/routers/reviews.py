# farmlink/routers/reviews.py
from typing import Literal

from fastapi import APIRouter, Depends, Query

from farmlink.core.security import get_current_user, require_roles
from farmlink.deps import get_repo
from farmlink.schemas import ReviewIn, VisibilityIn
from farmlink.services import reviews

router = APIRouter(prefix="/api/reviews", tags=["reviews"])

SortBy = Literal["newest", "oldest", "highest", "lowest"]


@router.post("", status_code=201)
async def create_review(body: ReviewIn, buyer=Depends(require_roles("buyer")), repo=Depends(get_repo)):
    review = await reviews.create_review(
        repo, buyer, body.product_id, body.order_id, body.rating, body.comment, body.aspects
    )
    return {"ok": True, "data": review}


@router.get("/product/{product_id}")
async def product_reviews(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortBy = "newest",
    repo=Depends(get_repo),
):
    return await reviews.product_reviews(repo, product_id, page=page, limit=limit, sort_by=sort_by)


@router.get("/buyer/{buyer_id}")
async def buyer_reviews(
    buyer_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    repo=Depends(get_repo),
):
    return await reviews.buyer_reviews(repo, buyer_id, page=page, limit=limit)


@router.get("/check/{order_id}")
async def check_can_review(order_id: str, buyer=Depends(require_roles("buyer")), repo=Depends(get_repo)):
    return {"ok": True, **await reviews.check_can_review(repo, order_id, buyer)}


@router.patch("/{review_id}/visibility")
async def set_visibility(review_id: str, body: VisibilityIn,
                         user=Depends(get_current_user), repo=Depends(get_repo)):
    return {"ok": True, "data": await reviews.set_visibility(repo, review_id, user, body.is_visible)}
