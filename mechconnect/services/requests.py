# mechconnect/services/requests.py
"""Service request lifecycle and the mechanic-facing request feed.

A mechanic sees two kinds of pending requests for a category: immediate
ones created within the live window, and every scheduled one regardless of
age. Both the one-shot listing and the live subscription return their
union, newest first.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence

from fastapi import UploadFile

from ..config import settings
from ..errors import Forbidden, InvalidState, NotFound
from ..models.mechanic import Mechanic
from ..models.service_request import RequestStatus, ServiceRequest, ServiceRequestCreate, ServiceRequestCreated
from ..queries import request_queries
from ..queries.customer_queries import get_customer
from ..queries.proposal_queries import list_answered_request_ids
from ..store import DocumentStore, Subscription
from ..utils.file_upload import is_voice_note, save_attachment
from .matching import notify_nearby_mechanics
from .notifier import Notifier
from .proposals import filter_unanswered_requests, notify_rejected_proposals, reject_pending_proposals

logger = logging.getLogger(__name__)

RequestFeedCallback = Callable[[List[ServiceRequest]], None]

def live_window(window_minutes: Optional[int] = None) -> timedelta:
    return timedelta(minutes=window_minutes or settings.live_request_window_minutes)

def merge_request_feeds(
    live: Iterable[ServiceRequest],
    scheduled: Iterable[ServiceRequest],
    now: datetime,
    window: timedelta
) -> List[ServiceRequest]:
    """Union of both feeds without duplicates, stale or non-pending entries, newest first"""
    cutoff = now - window
    merged = {}
    for request in list(live) + list(scheduled):
        if request.status != RequestStatus.PENDING:
            continue
        if not request.is_scheduled and request.created_at < cutoff:
            continue
        merged[request.id] = request
    return sorted(merged.values(), key=lambda r: r.created_at, reverse=True)

async def create_service_request(
    store: DocumentStore,
    notifier: Notifier,
    customer_id: str,
    payload: ServiceRequestCreate,
    attachments: Sequence[UploadFile] = ()
) -> ServiceRequestCreated:
    """Create a pending request and alert nearby mechanics.

    Attachments are stored one by one. One that cannot be stored is left
    out and reported in ``warnings``; the request is created regardless.
    """
    customer = await get_customer(store, customer_id)
    if not customer:
        raise NotFound.resource("Customer")

    images = []
    voice_note_url = None
    warnings = []
    for attachment in attachments:
        if is_voice_note(attachment) and (voice_note_url or payload.voice_note_url):
            warnings.append(f"Only one voice note is allowed; {attachment.filename} was skipped")
            continue
        try:
            url = save_attachment(attachment, customer_id)
        except (ValueError, OSError) as e:
            logger.warning(f"Attachment {attachment.filename} dropped: {str(e)}")
            warnings.append(f"Could not upload {attachment.filename}: {str(e)}")
            continue
        if is_voice_note(attachment):
            voice_note_url = url
        else:
            images.append(url)

    request = await request_queries.create_request(store, customer, payload, images, voice_note_url)
    logger.info(f"Request {request.id} created by {customer_id} for {request.category.value}")

    matched = await notify_nearby_mechanics(store, notifier, request)
    return ServiceRequestCreated(request=request, matched_mechanics=len(matched), warnings=warnings)

async def get_request(store: DocumentStore, request_id: str) -> ServiceRequest:
    request = await request_queries.get_request(store, request_id)
    if not request:
        raise NotFound.resource("Service request")
    return request

async def list_requests_for_category(
    store: DocumentStore,
    category: str,
    window_minutes: Optional[int] = None
) -> List[ServiceRequest]:
    window = live_window(window_minutes)
    now = store.now()
    live = await request_queries.list_pending_requests(store, category, created_after=now - window)
    scheduled = await request_queries.list_pending_requests(store, category, scheduled=True)
    return merge_request_feeds(live, scheduled, now, window)

async def list_feed_for_mechanic(store: DocumentStore, mechanic: Mechanic) -> List[ServiceRequest]:
    """Open requests in the mechanic's categories that they have not answered yet"""
    if not mechanic.is_eligible:
        return []
    requests = []
    for category in mechanic.categories:
        requests.extend(await list_requests_for_category(store, category.value))
    answered = await list_answered_request_ids(store, mechanic.id)
    requests.sort(key=lambda r: r.created_at, reverse=True)
    return filter_unanswered_requests(requests, answered)

class RequestFeedSubscription(Subscription):
    """Live union of the recent and the scheduled pending requests of a category"""

    def __init__(self, store: DocumentStore, callback: RequestFeedCallback, window: timedelta):
        self.store = store
        self.callback = callback
        self.window = window
        self.subscriptions: List[Subscription] = []
        self._live: Optional[List[ServiceRequest]] = None
        self._scheduled: Optional[List[ServiceRequest]] = None

    def on_live(self, docs) -> None:
        self._live = [ServiceRequest(**doc) for doc in docs]
        self.emit()

    def on_scheduled(self, docs) -> None:
        self._scheduled = [ServiceRequest(**doc) for doc in docs]
        self.emit()

    def emit(self) -> None:
        if self._live is None or self._scheduled is None:
            return
        self.callback(merge_request_feeds(self._live, self._scheduled, self.store.now(), self.window))

    async def close(self) -> None:
        for subscription in self.subscriptions:
            await subscription.close()
        self.subscriptions = []

async def subscribe_to_requests_for_category(
    store: DocumentStore,
    category: str,
    callback: RequestFeedCallback,
    window_minutes: Optional[int] = None
) -> RequestFeedSubscription:
    window = live_window(window_minutes)
    feed = RequestFeedSubscription(store, callback, window)
    feed.subscriptions.append(await store.subscribe(
        request_queries.REQUESTS,
        feed.on_live,
        request_queries.category_feed_filters(category, created_after=store.now() - window),
        order_by="created_at",
        descending=True
    ))
    feed.subscriptions.append(await store.subscribe(
        request_queries.REQUESTS,
        feed.on_scheduled,
        request_queries.category_feed_filters(category, scheduled=True),
        order_by="created_at",
        descending=True
    ))
    return feed

async def cancel_request(store: DocumentStore, notifier: Notifier, customer_id: str, request_id: str) -> ServiceRequest:
    """Withdraw a pending request; its pending proposals are rejected with it"""
    async with store.transaction() as tx:
        request = await get_request(tx, request_id)
        if request.customer_id != customer_id:
            raise Forbidden("Not authorized to cancel this request")
        await tx.lock(f"request:{request_id}")
        cancelled = await request_queries.update_request_status(
            tx, request_id, RequestStatus.CANCELLED, expect_status=RequestStatus.PENDING
        )
        if cancelled is None:
            raise InvalidState("Only pending requests can be cancelled")
        rejected = await reject_pending_proposals(tx, request_id)

    logger.info(f"Request {request_id} cancelled by customer, {len(rejected)} proposals closed")
    await notify_rejected_proposals(notifier, rejected, "Request cancelled", "The customer cancelled this request")
    return cancelled

async def expire_stale_requests(store: DocumentStore, notifier: Notifier, window_minutes: Optional[int] = None) -> int:
    """Mark immediate pending requests older than the live window as expired"""
    cutoff = store.now() - live_window(window_minutes)
    expired = 0
    for request in await request_queries.list_stale_requests(store, cutoff):
        async with store.transaction() as tx:
            await tx.lock(f"request:{request.id}")
            updated = await request_queries.update_request_status(
                tx, request.id, RequestStatus.EXPIRED, expect_status=RequestStatus.PENDING
            )
            rejected = await reject_pending_proposals(tx, request.id) if updated is not None else []
        if updated is not None:
            expired += 1
            await notify_rejected_proposals(notifier, rejected, "Request expired", "This request expired without a booking")
    logger.info(f"Expired {expired} stale requests")
    return expired
