# mechconnect/services/bookings.py
"""Booking state machine.

    scheduled -> confirmed | ongoing | cancelled
    confirmed -> ongoing | cancelled
    ongoing   -> completed | cancelled

Every transition is a compare-and-set on the status the booking was read
in, so two racing transitions cannot both succeed. The store's unique key on
ongoing bookings keeps a mechanic or customer to one job in progress.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..errors import Forbidden, InvalidState, NotFound
from ..models.booking import Booking, BookingReschedule, BookingStatus, LocationUpdateOut, RouteInfo
from ..models.common import GeoPoint
from ..models.notification import NotificationType
from ..models.proposal import ProposalStatus
from ..models.service_request import RequestStatus
from ..queries import booking_queries
from ..queries.mechanic_queries import get_mechanic, increment_counters
from ..queries.proposal_queries import get_proposal, update_proposal_status
from ..queries.request_queries import get_request, update_request_status
from ..store import DocumentStore, DuplicateDocument
from ..utils.haversine import haversine
from .google_maps import GoogleMapsService
from .notifier import Notifier
from .proposals import notify_rejected_proposals, reject_pending_proposals

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.SCHEDULED: {BookingStatus.CONFIRMED, BookingStatus.ONGOING, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.ONGOING, BookingStatus.CANCELLED},
    BookingStatus.ONGOING: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

ONGOING_CONFLICT = "Mechanic or customer already has a job in progress"

def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]

async def _transition(
    store: DocumentStore,
    booking: Booking,
    target: BookingStatus,
    changes: Optional[Dict[str, Any]] = None
) -> Booking:
    if not can_transition(booking.status, target):
        raise InvalidState(f"Booking cannot move from {booking.status.value} to {target.value}")
    try:
        updated = await booking_queries.update_booking(
            store, booking.id, {**(changes or {}), "status": target.value}, expect_status=booking.status
        )
    except DuplicateDocument:
        raise InvalidState(ONGOING_CONFLICT)
    if updated is None:
        raise InvalidState("Booking was changed by another action, reload and retry")
    logger.info(f"Booking {booking.id}: {booking.status.value} -> {target.value}")
    return updated

def _party_of(booking: Booking, user: dict) -> str:
    if user["type"] == "customer" and booking.customer_id == user["id"]:
        return "customer"
    if user["type"] == "mechanic" and booking.mechanic_id == user["id"]:
        return "mechanic"
    raise Forbidden("Not authorized to access this booking")

async def get_booking(store: DocumentStore, booking_id: str) -> Booking:
    booking = await booking_queries.get_booking(store, booking_id)
    if not booking:
        raise NotFound.resource("Booking")
    return booking

async def get_booking_for(store: DocumentStore, user: dict, booking_id: str) -> Booking:
    booking = await get_booking(store, booking_id)
    _party_of(booking, user)
    return booking

async def _mechanic_booking(store: DocumentStore, mechanic_id: str, booking_id: str) -> Booking:
    booking = await get_booking(store, booking_id)
    if booking.mechanic_id != mechanic_id:
        raise Forbidden("Not authorized to update this booking")
    return booking

async def accept_proposal(store: DocumentStore, notifier: Notifier, customer_id: str, proposal_id: str) -> Booking:
    """Accept one proposal and turn it into a booking.

    The winning proposal, its rejected siblings, the matched request and the
    new booking are committed together.
    """
    async with store.transaction() as tx:
        proposal = await get_proposal(tx, proposal_id)
        if not proposal:
            raise NotFound.resource("Proposal")
        if proposal.customer_id != customer_id:
            raise Forbidden("Not authorized to accept this proposal")

        request = await get_request(tx, proposal.request_id)
        if not request:
            raise NotFound.resource("Service request")
        await tx.lock(f"request:{request.id}")
        if request.status != RequestStatus.PENDING:
            raise InvalidState("Request already has a booking or is closed")

        accepted = await update_proposal_status(tx, proposal_id, ProposalStatus.ACCEPTED, expect_status=ProposalStatus.PENDING)
        if accepted is None:
            raise InvalidState("Proposal is no longer pending")

        rejected = await reject_pending_proposals(tx, request.id)

        if await update_request_status(tx, request.id, RequestStatus.MATCHED, expect_status=RequestStatus.PENDING) is None:
            raise InvalidState("Request already has a booking or is closed")

        mechanic = await get_mechanic(tx, proposal.mechanic_id)
        status = BookingStatus.SCHEDULED if request.is_scheduled else BookingStatus.ONGOING
        try:
            booking = await booking_queries.create_booking(tx, {
                "customer_id": request.customer_id,
                "customer_name": request.customer_name,
                "mechanic_id": proposal.mechanic_id,
                "mechanic_name": proposal.mechanic_name,
                "request_id": request.id,
                "proposal_id": proposal.id,
                "category": request.category.value,
                "customer_location": request.location.model_dump(),
                "mechanic_location": mechanic.location.model_dump() if mechanic and mechanic.location else None,
                "price": proposal.price,
                "estimated_time": proposal.estimated_time,
                "status": status.value,
                "is_scheduled": request.is_scheduled,
                "scheduled_date": request.scheduled_date.isoformat() if request.scheduled_date else None,
                "scheduled_time": request.scheduled_time,
                "started_at": tx.now() if status == BookingStatus.ONGOING else None,
                "is_reviewed": False,
            })
        except DuplicateDocument:
            raise InvalidState(ONGOING_CONFLICT)

    logger.info(f"Proposal {proposal_id} accepted, booking {booking.id} is {status.value}")
    await notifier.send(
        proposal.mechanic_id,
        NotificationType.PROPOSAL_ACCEPTED,
        "Proposal accepted",
        f"{request.customer_name} accepted your proposal",
        {"booking_id": booking.id, "request_id": request.id}
    )
    await notify_rejected_proposals(notifier, rejected, "Proposal not selected", "The customer chose another mechanic")
    return booking

async def confirm_booking(store: DocumentStore, notifier: Notifier, mechanic_id: str, booking_id: str) -> Booking:
    booking = await _mechanic_booking(store, mechanic_id, booking_id)
    if booking.status != BookingStatus.SCHEDULED:
        raise InvalidState("Only scheduled bookings can be confirmed")
    booking = await _transition(store, booking, BookingStatus.CONFIRMED)
    await notifier.send(
        booking.customer_id,
        NotificationType.BOOKING_CONFIRMED,
        "Booking confirmed",
        f"{booking.mechanic_name} confirmed your booking",
        {"booking_id": booking.id}
    )
    return booking

async def start_job(store: DocumentStore, notifier: Notifier, mechanic_id: str, booking_id: str) -> Booking:
    booking = await _mechanic_booking(store, mechanic_id, booking_id)
    booking = await _transition(store, booking, BookingStatus.ONGOING, {"started_at": store.now()})
    await notifier.send(
        booking.customer_id,
        NotificationType.BOOKING_STARTED,
        "Mechanic on the way",
        f"{booking.mechanic_name} has started your job",
        {"booking_id": booking.id}
    )
    return booking

async def update_live_location(
    store: DocumentStore,
    notifier: Notifier,
    mechanic_id: str,
    booking_id: str,
    location: GeoPoint
) -> LocationUpdateOut:
    """Record the mechanic's position and report the distance left to the customer.

    The first update inside the arrival threshold stamps ``arrived_at`` and
    tells the customer; the booking stays ongoing.
    """
    booking = await _mechanic_booking(store, mechanic_id, booking_id)
    if booking.status != BookingStatus.ONGOING:
        raise InvalidState("Booking must be ongoing to share location")

    distance = haversine(
        location.latitude, location.longitude,
        booking.customer_location.latitude, booking.customer_location.longitude
    )
    arrived = distance < settings.arrival_threshold_km

    changes = {"mechanic_location": location.model_dump()}
    first_arrival = arrived and booking.arrived_at is None
    if first_arrival:
        changes["arrived_at"] = store.now()
    updated = await booking_queries.update_booking(store, booking_id, changes, expect_status=BookingStatus.ONGOING)
    if updated is None:
        raise InvalidState("Booking must be ongoing to share location")

    if first_arrival:
        logger.info(f"Mechanic {mechanic_id} arrived for booking {booking_id}")
        await notifier.send(
            booking.customer_id,
            NotificationType.MECHANIC_ARRIVED,
            "Mechanic arrived",
            f"{booking.mechanic_name} has arrived at your location",
            {"booking_id": booking_id}
        )
    return LocationUpdateOut(booking_id=booking_id, distance_km=round(distance, 2), arrived=arrived)

async def complete_job(store: DocumentStore, notifier: Notifier, mechanic_id: str, booking_id: str) -> Booking:
    booking = await _mechanic_booking(store, mechanic_id, booking_id)
    if booking.status != BookingStatus.ONGOING:
        raise InvalidState("Booking must be ongoing to complete")
    async with store.transaction() as tx:
        completed = await _transition(tx, booking, BookingStatus.COMPLETED, {"completed_at": tx.now()})
        await increment_counters(tx, mechanic_id, completed_jobs=1, total_earnings=booking.price)

    await notifier.send(
        booking.customer_id,
        NotificationType.BOOKING_COMPLETED,
        "Job completed",
        f"{booking.mechanic_name} marked your job as completed. Leave a review!",
        {"booking_id": booking_id}
    )
    await notifier.send(
        mechanic_id,
        NotificationType.BOOKING_COMPLETED,
        "Job completed",
        f"You earned Rs. {booking.price:g}",
        {"booking_id": booking_id}
    )
    return completed

async def cancel_booking(
    store: DocumentStore,
    notifier: Notifier,
    user: dict,
    booking_id: str,
    reason: Optional[str] = None
) -> Booking:
    booking = await get_booking(store, booking_id)
    party = _party_of(booking, user)
    booking = await _transition(store, booking, BookingStatus.CANCELLED, {
        "cancelled_at": store.now(),
        "cancelled_by": party,
        "cancellation_reason": reason,
    })

    other = booking.mechanic_id if party == "customer" else booking.customer_id
    await notifier.send(
        other,
        NotificationType.BOOKING_CANCELLED,
        "Booking cancelled",
        f"The {party} cancelled the booking" + (f": {reason}" if reason else ""),
        {"booking_id": booking_id}
    )
    return booking

async def reschedule_booking(
    store: DocumentStore,
    notifier: Notifier,
    customer_id: str,
    booking_id: str,
    payload: BookingReschedule
) -> Booking:
    booking = await get_booking(store, booking_id)
    if booking.customer_id != customer_id:
        raise Forbidden("Not authorized to reschedule this booking")
    if booking.status not in (BookingStatus.SCHEDULED, BookingStatus.CONFIRMED):
        raise InvalidState("Only scheduled or confirmed bookings can be rescheduled")

    updated = await booking_queries.update_booking(
        store,
        booking_id,
        {"scheduled_date": payload.scheduled_date.isoformat(), "scheduled_time": payload.scheduled_time},
        expect_status=booking.status
    )
    if updated is None:
        raise InvalidState("Booking was changed by another action, reload and retry")

    await notifier.send(
        booking.mechanic_id,
        NotificationType.BOOKING_RESCHEDULED,
        "Booking rescheduled",
        f"New time: {payload.scheduled_date.isoformat()} {payload.scheduled_time}",
        {"booking_id": booking_id}
    )
    return updated

async def get_active_booking(store: DocumentStore, user_id: str, role: str) -> Optional[Booking]:
    return await booking_queries.get_active_booking(store, user_id, role)

async def list_bookings(store: DocumentStore, user_id: str, role: str, status: Optional[str] = None) -> List[Booking]:
    return await booking_queries.list_bookings(store, user_id, role, status)

async def get_route(booking: Booking, maps: GoogleMapsService) -> RouteInfo:
    if booking.mechanic_location is None:
        raise InvalidState("Mechanic location is not available yet")
    return await run_in_threadpool(maps.directions, booking.mechanic_location, booking.customer_location)
