# mechconnect/routes/requests.py
import asyncio
import contextlib
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..database import get_store
from ..errors import NotFound
from ..models.proposal import Proposal, ProposalCreate
from ..models.service_request import ServiceRequest, ServiceRequestCreate, ServiceRequestCreated
from ..queries.mechanic_queries import get_mechanic
from ..queries.proposal_queries import list_answered_request_ids
from ..services import proposals as proposal_service
from ..services import requests as request_service
from ..services.notifier import Notifier, get_notifier
from ..services.proposals import filter_unanswered_requests
from ..store import DocumentStore
from ..utils.auth import get_current_user, get_socket_user, require_customer, require_mechanic
from ..queries.request_queries import list_customer_requests

logger = logging.getLogger(__name__)

requests_router = APIRouter(prefix="/requests", tags=["Service Requests"])

@requests_router.post("/", response_model=ServiceRequestCreated, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: ServiceRequestCreate,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await request_service.create_service_request(store, notifier, current_user["id"], payload)

@requests_router.post("/with-attachments", response_model=ServiceRequestCreated, status_code=status.HTTP_201_CREATED)
async def create_request_with_attachments(
    payload: str = Form(..., description="Service request as JSON"),
    files: List[UploadFile] = File(default=[]),
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    try:
        request_data = ServiceRequestCreate.model_validate_json(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json()))
    return await request_service.create_service_request(store, notifier, current_user["id"], request_data, files)

@requests_router.get("/mine", response_model=List[ServiceRequest])
async def get_my_requests(
    status: Optional[str] = None,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store)
):
    return await list_customer_requests(store, current_user["id"], status)

@requests_router.get("/feed", response_model=List[ServiceRequest])
async def get_request_feed(
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    """Recent and scheduled open requests in the mechanic's categories they have not answered"""
    mechanic = await get_mechanic(store, current_user["id"])
    if not mechanic:
        raise NotFound.resource("Mechanic")
    return await request_service.list_feed_for_mechanic(store, mechanic)

@requests_router.websocket("/ws/feed")
async def request_feed_socket(
    websocket: WebSocket,
    token: str,
    category: Optional[str] = None,
    store: DocumentStore = Depends(get_store)
):
    """Push the mechanic's open request feed every time it changes"""
    user = await get_socket_user(token, store)
    mechanic = await get_mechanic(store, user["id"]) if user and user["type"] == "mechanic" else None
    if mechanic is None or not mechanic.is_eligible:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    categories = [c.value for c in mechanic.categories]
    if category:
        if category not in categories:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        categories = [category]

    updates: asyncio.Queue = asyncio.Queue()
    await websocket.accept()

    async def push_updates():
        latest = {}
        while True:
            name, requests = await updates.get()
            latest[name] = requests
            answered = await list_answered_request_ids(store, mechanic.id)
            merged = sorted(
                {r.id: r for feed in latest.values() for r in feed}.values(),
                key=lambda r: r.created_at,
                reverse=True
            )
            await websocket.send_json([
                r.model_dump(mode="json") for r in filter_unanswered_requests(merged, answered)
            ])

    subscriptions = []
    sender = asyncio.ensure_future(push_updates())
    try:
        for name in categories:
            subscriptions.append(await request_service.subscribe_to_requests_for_category(
                store, name, lambda requests, name=name: updates.put_nowait((name, requests))
            ))
        # Incoming messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Mechanic {mechanic.id} left the live feed")
    finally:
        for subscription in subscriptions:
            await subscription.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
            await sender

@requests_router.get("/{request_id}", response_model=ServiceRequest)
async def get_request(
    request_id: str,
    current_user: dict = Depends(get_current_user),
    store: DocumentStore = Depends(get_store)
):
    request = await request_service.get_request(store, request_id)
    if current_user["type"] == "customer" and request.customer_id != current_user["id"]:
        raise HTTPException(status_code=403, detail="Not authorized to view this request")
    return request

@requests_router.post("/{request_id}/cancel", response_model=ServiceRequest)
async def cancel_request(
    request_id: str,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await request_service.cancel_request(store, notifier, current_user["id"], request_id)

@requests_router.get("/{request_id}/proposals", response_model=List[Proposal])
async def get_request_proposals(
    request_id: str,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store)
):
    request = await request_service.get_request(store, request_id)
    if request.customer_id != current_user["id"]:
        raise HTTPException(status_code=403, detail="Not authorized to view these proposals")
    return await proposal_service.list_proposals_for_request(store, request_id)

@requests_router.post("/{request_id}/proposals", response_model=Proposal, status_code=status.HTTP_201_CREATED)
async def submit_proposal(
    request_id: str,
    payload: ProposalCreate,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await proposal_service.submit_proposal(store, notifier, current_user["id"], request_id, payload)
