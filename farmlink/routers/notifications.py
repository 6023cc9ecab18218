# farmlink/routers/notifications.py
from fastapi import APIRouter, Depends, Query

from farmlink.core.errors import NotFound, Unauthorized
from farmlink.core.security import get_current_user
from farmlink.deps import get_repo
from farmlink.services.views import public_doc

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


async def _owned(repo, notification_id: str, user: dict, action: str) -> dict:
    doc = await repo.find_notification(notification_id)
    if not doc:
        raise NotFound("Notification", notification_id)
    if doc["user"] != user["_id"]:
        raise Unauthorized(f"Not authorized to {action} this notification")
    return doc


@router.get("/unread-count")
async def unread_count(user=Depends(get_current_user), repo=Depends(get_repo)):
    return {"unread_count": await repo.count_notifications(user["_id"], unread_only=True)}


@router.get("")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    unread_only: bool = False,
    user=Depends(get_current_user),
    repo=Depends(get_repo),
):
    rows = await repo.list_notifications(user["_id"], unread_only=unread_only, skip=skip, limit=limit)
    return {
        "notifications": [public_doc(n) for n in rows],
        "total": await repo.count_notifications(user["_id"]),
        "unread_count": await repo.count_notifications(user["_id"], unread_only=True),
    }


@router.put("/read-all")
async def mark_all_read(user=Depends(get_current_user), repo=Depends(get_repo)):
    count = await repo.mark_all_read(user["_id"])
    return {"ok": True, "message": "All notifications marked as read", "updated_count": count}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user=Depends(get_current_user), repo=Depends(get_repo)):
    await _owned(repo, notification_id, user, "update")
    doc = await repo.mark_notification_read(notification_id)
    return {"ok": True, "message": "Notification marked as read", "data": public_doc(doc)}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user=Depends(get_current_user), repo=Depends(get_repo)):
    await _owned(repo, notification_id, user, "delete")
    await repo.delete_notification(notification_id)
    return {"deleted": True}
