# mechconnect/services/notifier.py
import logging
from typing import Any, Dict, Optional

from fastapi import Depends

from ..database import get_store
from ..models.notification import NotificationType
from ..queries.notification_queries import create_notification
from ..store import DocumentStore

logger = logging.getLogger(__name__)

class Notifier:
    """In-app notification sender.

    Delivery is fire-and-forget: a failed send is logged and never reaches
    the workflow that triggered it.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def deliver(self, user_id: str, type: NotificationType, title: str, body: str, data: Dict[str, Any]) -> None:
        await create_notification(self.store, user_id, type.value, title, body, data)

    async def send(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> bool:
        try:
            await self.deliver(user_id, type, title, body, data or {})
        except Exception as e:
            logger.warning(f"Notification {type.value} to {user_id} failed: {str(e)}")
            return False
        logger.info(f"Notification {type.value} sent to {user_id}")
        return True

async def get_notifier(store: DocumentStore = Depends(get_store)) -> Notifier:
    return Notifier(store)
