# farmlink/routers/products.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from farmlink.core.errors import NotFound, Unauthorized
from farmlink.core.security import require_roles
from farmlink.deps import get_repo
from farmlink.repos.base import utcnow
from farmlink.schemas import ProductIn, ProductUpdate
from farmlink.services.storage import get_storage
from farmlink.services.views import public_doc

router = APIRouter(prefix="/api/products", tags=["products"])


def _status_for(quantity: float) -> str:
    return "available" if float(quantity or 0) > 0 else "sold_out"


async def _owned_product(repo, product_id: str, farmer: dict) -> dict:
    product = await repo.find_product(product_id)
    if not product:
        raise NotFound("Product", product_id)
    if product["farmer"] != farmer["_id"]:
        raise Unauthorized("Not authorized to modify this product")
    return product


@router.post("", status_code=201)
async def create_product(body: ProductIn, farmer=Depends(require_roles("farmer")), repo=Depends(get_repo)):
    doc = body.model_dump()
    if not doc.get("location") and farmer.get("farm_location"):
        doc["location"] = {"address": "", "district": None, "location": farmer["farm_location"]}
    doc.update({
        "farmer": farmer["_id"],
        "status": _status_for(body.quantity),
        "average_rating": 0,
        "review_count": 0,
        "created_at": utcnow(),
    })
    saved = await repo.insert_product(doc)
    return {"ok": True, "data": public_doc(saved)}


@router.get("")
async def list_products(
    category: Optional[str] = None,
    district: Optional[str] = None,
    farmer: Optional[str] = None,
    q: Optional[str] = Query(None, description="Search by crop name"),
    available_only: bool = True,
    repo=Depends(get_repo),
):
    rows = await repo.list_products(
        farmer=farmer, category=category, district=district, search=q, available_only=available_only
    )
    return {"count": len(rows), "data": [public_doc(p) for p in rows]}


@router.get("/{product_id}")
async def get_product(product_id: str, repo=Depends(get_repo)):
    product = await repo.find_product(product_id)
    if not product:
        raise NotFound("Product", product_id)
    return {"ok": True, "data": public_doc(product)}


@router.patch("/{product_id}")
async def update_product(product_id: str, body: ProductUpdate,
                         farmer=Depends(require_roles("farmer")), repo=Depends(get_repo)):
    await _owned_product(repo, product_id, farmer)
    fields = body.model_dump(exclude_unset=True)
    if "quantity" in fields:
        fields["status"] = _status_for(fields["quantity"])
    updated = await repo.update_product(product_id, {**fields, "updated_at": utcnow()})
    return {"ok": True, "data": public_doc(updated)}


@router.delete("/{product_id}")
async def delete_product(product_id: str, farmer=Depends(require_roles("farmer")), repo=Depends(get_repo)):
    await _owned_product(repo, product_id, farmer)
    await repo.delete_product(product_id)
    return {"deleted": True}


@router.post("/{product_id}/photos")
async def upload_product_photo(product_id: str, photo: UploadFile = File(...),
                               farmer=Depends(require_roles("farmer")),
                               repo=Depends(get_repo), storage=Depends(get_storage)):
    await _owned_product(repo, product_id, farmer)
    url = await storage.save(photo, "products", field="photo")
    updated = await repo.push_product_photo(product_id, url)
    if updated is None:
        raise NotFound("Product", product_id)
    return {"ok": True, "data": {"photo_url": url, "photos": updated["photos"]}}
