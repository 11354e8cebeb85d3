# mechconnect/services/chat.py
"""Customer and mechanic messaging, scoped to a booking.

A booking has at most one chat, opened by whichever party writes first.
Only the booking's customer and mechanic can read or write it.
"""
import logging
from typing import Callable, List

from ..errors import Forbidden, NotFound
from ..models.chat import Chat, Message, MessageCreate
from ..models.notification import NotificationType
from ..queries import chat_queries
from ..store import DocumentStore, DuplicateDocument, Subscription
from .bookings import get_booking_for
from .notifier import Notifier

logger = logging.getLogger(__name__)

async def create_or_get_chat(store: DocumentStore, user: dict, booking_id: str) -> Chat:
    booking = await get_booking_for(store, user, booking_id)
    chat = await chat_queries.get_chat_for_booking(store, booking.id)
    if chat:
        return chat
    try:
        chat = await chat_queries.create_chat(store, booking.id, booking.customer_id, booking.mechanic_id)
    except DuplicateDocument:
        # The other party opened it first
        return await chat_queries.get_chat_for_booking(store, booking.id)
    logger.info(f"Chat {chat.id} opened for booking {booking.id}")
    return chat

async def get_chat_for(store: DocumentStore, user: dict, chat_id: str) -> Chat:
    chat = await chat_queries.get_chat(store, chat_id)
    if not chat:
        raise NotFound.resource("Chat")
    if user["id"] not in chat.participants:
        raise Forbidden("Not authorized to access this chat")
    return chat

async def list_chats(store: DocumentStore, user: dict) -> List[Chat]:
    return await chat_queries.list_user_chats(store, user["id"])

async def send_message(
    store: DocumentStore,
    notifier: Notifier,
    user: dict,
    chat_id: str,
    payload: MessageCreate
) -> Message:
    """Append a message and refresh the chat's last-message preview together"""
    chat = await get_chat_for(store, user, chat_id)
    async with store.transaction() as tx:
        message = await chat_queries.create_message(
            tx, chat.id, user["id"], user["name"], payload.text, payload.image_url
        )
        await chat_queries.set_last_message(tx, chat.id, message.text or "Image", message.created_at)

    recipient = chat.mechanic_id if user["id"] == chat.customer_id else chat.customer_id
    await notifier.send(
        recipient,
        NotificationType.NEW_MESSAGE,
        f"New message from {user['name']}",
        (message.text or "Sent you an image")[:200],
        {"chat_id": chat.id, "booking_id": chat.booking_id}
    )
    return message

async def list_messages(store: DocumentStore, user: dict, chat_id: str) -> List[Message]:
    chat = await get_chat_for(store, user, chat_id)
    return await chat_queries.list_messages(store, chat.id)

async def subscribe_to_messages(
    store: DocumentStore,
    chat_id: str,
    callback: Callable[[List[Message]], None]
) -> Subscription:
    return await store.subscribe(
        chat_queries.MESSAGES,
        lambda docs: callback([Message(**doc) for doc in docs]),
        [("chat_id", "==", chat_id)],
        order_by="created_at"
    )

async def mark_read(store: DocumentStore, user: dict, chat_id: str) -> int:
    chat = await get_chat_for(store, user, chat_id)
    return await chat_queries.mark_messages_read(store, chat.id, user["id"])
