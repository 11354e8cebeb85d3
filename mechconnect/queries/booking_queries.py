# mechconnect/queries/booking_queries.py
from typing import Any, Dict, List, Optional

from ..models.booking import Booking, BookingStatus
from ..store import DocumentStore

BOOKINGS = "bookings"

USER_FIELDS = {
    "customer": "customer_id",
    "mechanic": "mechanic_id",
}

async def create_booking(store: DocumentStore, data: Dict[str, Any]) -> Booking:
    booking_id = await store.add(BOOKINGS, data)
    return await get_booking(store, booking_id)

async def get_booking(store: DocumentStore, booking_id: str) -> Optional[Booking]:
    doc = await store.get(BOOKINGS, booking_id)
    return Booking(**doc) if doc else None

async def update_booking(
    store: DocumentStore,
    booking_id: str,
    changes: Dict[str, Any],
    expect_status: Optional[BookingStatus] = None
) -> Optional[Booking]:
    """Apply changes; with ``expect_status`` only if the booking is still in it"""
    expect = {"status": expect_status.value} if expect_status else None
    doc = await store.update(BOOKINGS, booking_id, changes, expect=expect)
    return Booking(**doc) if doc else None

async def get_active_booking(store: DocumentStore, user_id: str, role: str) -> Optional[Booking]:
    """The ongoing booking of a customer or mechanic, if any"""
    docs = await store.query(
        BOOKINGS,
        [(USER_FIELDS[role], "==", user_id), ("status", "==", BookingStatus.ONGOING.value)],
        limit=1
    )
    return Booking(**docs[0]) if docs else None

async def list_bookings(
    store: DocumentStore,
    user_id: str,
    role: str,
    status: Optional[str] = None
) -> List[Booking]:
    """Get bookings for a customer or mechanic with optional status filter"""
    filters = [(USER_FIELDS[role], "==", user_id)]
    if status:
        filters.append(("status", "==", status))
    docs = await store.query(BOOKINGS, filters, order_by="created_at", descending=True)
    return [Booking(**doc) for doc in docs]

async def mark_booking_reviewed(
    store: DocumentStore,
    booking_id: str,
    rating: int,
    comment: Optional[str] = None
) -> Optional[Booking]:
    """Attach a review to a completed booking exactly once"""
    doc = await store.update(
        BOOKINGS,
        booking_id,
        {"is_reviewed": True, "rating": rating, "review_comment": comment},
        expect={"status": BookingStatus.COMPLETED.value, "is_reviewed": False}
    )
    return Booking(**doc) if doc else None
