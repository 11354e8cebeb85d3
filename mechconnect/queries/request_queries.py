# mechconnect/queries/request_queries.py
from datetime import datetime
from typing import List, Optional

from ..models.customer import Customer
from ..models.service_request import RequestStatus, ServiceRequest, ServiceRequestCreate
from ..store import DocumentStore

REQUESTS = "service_requests"

def category_feed_filters(category: str, created_after: Optional[datetime] = None, scheduled: Optional[bool] = None) -> list:
    """Filters for pending requests of a category, optionally narrowed by age or scheduling"""
    filters = [
        ("category", "==", category),
        ("status", "==", RequestStatus.PENDING.value),
    ]
    if created_after is not None:
        filters.append(("created_at", ">=", created_after))
    if scheduled is not None:
        filters.append(("is_scheduled", "==", scheduled))
    return filters

async def create_request(
    store: DocumentStore,
    customer: Customer,
    payload: ServiceRequestCreate,
    images: Optional[List[str]] = None,
    voice_note_url: Optional[str] = None
) -> ServiceRequest:
    """Create a pending service request for a customer"""
    data = payload.model_dump(mode="json")
    data.update(
        customer_id=customer.id,
        customer_name=customer.name,
        customer_phone=customer.phone,
        status=RequestStatus.PENDING.value,
        images=data["images"] + list(images or []),
        voice_note_url=voice_note_url or data["voice_note_url"],
    )
    request_id = await store.add(REQUESTS, data)
    return await get_request(store, request_id)

async def get_request(store: DocumentStore, request_id: str) -> Optional[ServiceRequest]:
    doc = await store.get(REQUESTS, request_id)
    return ServiceRequest(**doc) if doc else None

async def list_pending_requests(
    store: DocumentStore,
    category: str,
    created_after: Optional[datetime] = None,
    scheduled: Optional[bool] = None
) -> List[ServiceRequest]:
    docs = await store.query(
        REQUESTS,
        category_feed_filters(category, created_after, scheduled),
        order_by="created_at",
        descending=True
    )
    return [ServiceRequest(**doc) for doc in docs]

async def list_customer_requests(
    store: DocumentStore,
    customer_id: str,
    status: Optional[str] = None
) -> List[ServiceRequest]:
    """Get requests for a customer with optional status filter"""
    filters = [("customer_id", "==", customer_id)]
    if status:
        filters.append(("status", "==", status))
    docs = await store.query(REQUESTS, filters, order_by="created_at", descending=True)
    return [ServiceRequest(**doc) for doc in docs]

async def update_request_status(
    store: DocumentStore,
    request_id: str,
    status: RequestStatus,
    expect_status: Optional[RequestStatus] = None
) -> Optional[ServiceRequest]:
    """Set a request's status; with ``expect_status`` only if it currently holds"""
    expect = {"status": expect_status.value} if expect_status else None
    doc = await store.update(REQUESTS, request_id, {"status": status.value}, expect=expect)
    return ServiceRequest(**doc) if doc else None

async def list_stale_requests(store: DocumentStore, created_before: datetime) -> List[ServiceRequest]:
    """Pending immediate requests created before the given time"""
    docs = await store.query(
        REQUESTS,
        [
            ("status", "==", RequestStatus.PENDING.value),
            ("is_scheduled", "==", False),
            ("created_at", "<", created_before),
        ]
    )
    return [ServiceRequest(**doc) for doc in docs]
