# mechconnect/queries/notification_queries.py
from typing import Any, Dict, List, Optional

from ..models.notification import Notification
from ..store import DocumentStore

NOTIFICATIONS = "notifications"

async def create_notification(
    store: DocumentStore,
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None
) -> str:
    return await store.add(NOTIFICATIONS, {
        "user_id": user_id,
        "type": type,
        "title": title,
        "message": message,
        "data": data or {},
        "read": False,
    })

async def list_notifications(store: DocumentStore, user_id: str, read: Optional[bool] = None) -> List[Notification]:
    filters = [("user_id", "==", user_id)]
    if read is not None:
        filters.append(("read", "==", read))
    docs = await store.query(NOTIFICATIONS, filters, order_by="created_at", descending=True)
    return [Notification(**doc) for doc in docs]

async def mark_notification_read(store: DocumentStore, notification_id: str, user_id: str) -> bool:
    doc = await store.get(NOTIFICATIONS, notification_id)
    if not doc or doc["user_id"] != user_id:
        return False
    await store.update(NOTIFICATIONS, notification_id, {"read": True})
    return True

async def mark_all_read(store: DocumentStore, user_id: str) -> int:
    unread = await store.query(NOTIFICATIONS, [("user_id", "==", user_id), ("read", "==", False)])
    for doc in unread:
        await store.update(NOTIFICATIONS, doc["id"], {"read": True})
    return len(unread)

async def count_unread(store: DocumentStore, user_id: str) -> int:
    unread = await store.query(NOTIFICATIONS, [("user_id", "==", user_id), ("read", "==", False)])
    return len(unread)
