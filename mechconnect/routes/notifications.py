# mechconnect/routes/notifications.py
from fastapi import APIRouter, Depends, HTTPException
from typing import List

from ..database import get_store
from ..models.notification import Notification
from ..queries import notification_queries
from ..store import DocumentStore
from ..utils.auth import get_current_user

notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])

@notifications_router.get("/", response_model=List[Notification])
async def get_notifications(
    status: str = "all",  # Options: "all", "read", "unread"
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    read = {"read": True, "unread": False}.get(status)
    return await notification_queries.list_notifications(store, current_user["id"], read)

@notifications_router.get("/unread/count")
async def get_unread_notification_count(
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    count = await notification_queries.count_unread(store, current_user["id"])
    return {"count": count}

@notifications_router.put("/mark-all-read")
async def mark_all_read(
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    await notification_queries.mark_all_read(store, current_user["id"])
    return {"message": "All notifications marked as read"}

@notifications_router.put("/{notification_id}/mark-read")
async def mark_notification_read(
    notification_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    if not await notification_queries.mark_notification_read(store, notification_id, current_user["id"]):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}
