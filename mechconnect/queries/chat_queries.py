# mechconnect/queries/chat_queries.py
from datetime import datetime
from typing import List, Optional

from ..models.chat import Chat, Message
from ..store import DocumentStore

CHATS = "chats"
MESSAGES = "messages"

async def create_chat(store: DocumentStore, booking_id: str, customer_id: str, mechanic_id: str) -> Chat:
    """Open the chat of a booking; the store allows one per booking"""
    chat_id = await store.add(CHATS, {
        "booking_id": booking_id,
        "customer_id": customer_id,
        "mechanic_id": mechanic_id,
        "participants": [customer_id, mechanic_id],
        "last_message": None,
        "last_message_at": None,
    })
    return await get_chat(store, chat_id)

async def get_chat(store: DocumentStore, chat_id: str) -> Optional[Chat]:
    doc = await store.get(CHATS, chat_id)
    return Chat(**doc) if doc else None

async def get_chat_for_booking(store: DocumentStore, booking_id: str) -> Optional[Chat]:
    docs = await store.query(CHATS, [("booking_id", "==", booking_id)], limit=1)
    return Chat(**docs[0]) if docs else None

async def list_user_chats(store: DocumentStore, user_id: str) -> List[Chat]:
    """Chats the user takes part in, most recently active first"""
    docs = await store.query(
        CHATS,
        [("participants", "array_contains", user_id)],
        order_by="last_message_at",
        descending=True
    )
    return [Chat(**doc) for doc in docs]

async def create_message(
    store: DocumentStore,
    chat_id: str,
    sender_id: str,
    sender_name: str,
    text: Optional[str] = None,
    image_url: Optional[str] = None
) -> Message:
    message_id = await store.add(MESSAGES, {
        "chat_id": chat_id,
        "sender_id": sender_id,
        "sender_name": sender_name,
        "text": text,
        "image_url": image_url,
        "read": False,
    })
    return Message(**await store.get(MESSAGES, message_id))

async def set_last_message(store: DocumentStore, chat_id: str, summary: str, sent_at: datetime) -> None:
    await store.update(CHATS, chat_id, {"last_message": summary, "last_message_at": sent_at})

async def list_messages(store: DocumentStore, chat_id: str) -> List[Message]:
    """Messages of a chat, oldest first"""
    docs = await store.query(MESSAGES, [("chat_id", "==", chat_id)], order_by="created_at")
    return [Message(**doc) for doc in docs]

async def mark_messages_read(store: DocumentStore, chat_id: str, reader_id: str) -> int:
    """Mark the other party's unread messages as read; returns how many changed"""
    docs = await store.query(MESSAGES, [
        ("chat_id", "==", chat_id),
        ("sender_id", "!=", reader_id),
        ("read", "==", False)
    ])
    marked = 0
    for doc in docs:
        if await store.update(MESSAGES, doc["id"], {"read": True}, expect={"read": False}):
            marked += 1
    return marked
