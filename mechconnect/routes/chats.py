# mechconnect/routes/chats.py
import asyncio
import contextlib
import logging
from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from ..database import get_store
from ..errors import Forbidden, NotFound
from ..models.chat import Chat, Message, MessageCreate
from ..services import chat as chat_service
from ..services.notifier import Notifier, get_notifier
from ..store import DocumentStore
from ..utils.auth import get_current_user, get_socket_user

logger = logging.getLogger(__name__)

chats_router = APIRouter(prefix="/chats", tags=["Chats"])

@chats_router.get("/", response_model=List[Chat])
async def get_my_chats(
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    return await chat_service.list_chats(store, current_user)

@chats_router.post("/bookings/{booking_id}", response_model=Chat)
async def open_booking_chat(
    booking_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    """Return the booking's chat, opening it on first use"""
    return await chat_service.create_or_get_chat(store, current_user, booking_id)

@chats_router.get("/{chat_id}/messages", response_model=List[Message])
async def get_messages(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    return await chat_service.list_messages(store, current_user, chat_id)

@chats_router.post("/{chat_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: str,
    payload: MessageCreate,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await chat_service.send_message(store, notifier, current_user, chat_id, payload)

@chats_router.put("/{chat_id}/mark-read")
async def mark_chat_read(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    marked = await chat_service.mark_read(store, current_user, chat_id)
    return {"marked": marked}

@chats_router.websocket("/ws/{chat_id}")
async def chat_socket(
    websocket: WebSocket,
    chat_id: str,
    token: str,
    store: DocumentStore = Depends(get_store)
):
    """Push the full message list every time the chat changes"""
    user = await get_socket_user(token, store)
    try:
        chat = await chat_service.get_chat_for(store, user, chat_id) if user else None
    except (Forbidden, NotFound):
        chat = None
    if chat is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    updates: asyncio.Queue = asyncio.Queue()
    await websocket.accept()

    async def push_updates():
        while True:
            messages = await updates.get()
            await websocket.send_json([m.model_dump(mode="json") for m in messages])

    sender = asyncio.ensure_future(push_updates())
    subscription = None
    try:
        subscription = await chat_service.subscribe_to_messages(store, chat.id, updates.put_nowait)
        # Messages are sent over HTTP; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"User {user['id']} left chat {chat.id}")
    finally:
        if subscription is not None:
            await subscription.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
            await sender
