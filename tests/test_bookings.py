import pytest

from mechconnect.errors import Forbidden, InvalidState
from mechconnect.models import (
    BookingReschedule,
    BookingStatus,
    NotificationType,
    ProposalCreate,
    ProposalStatus,
    RequestStatus,
    ReviewCreate,
)
from mechconnect.queries import get_mechanic, get_proposal, get_request
from mechconnect.services import bookings, proposals, reviews
from mechconnect.services.bookings import ALLOWED_TRANSITIONS, can_transition
from mechconnect.services.requests import create_service_request
from mechconnect.models import ServiceRequestCreate
from tests.conftest import ISLAMABAD, NEAR_ISLAMABAD, make_customer, make_mechanic, make_request, point

OFFER = ProposalCreate(price=2500, estimated_time="30 min")


async def _booked(store, notifier, customer=None, mechanic=None, is_scheduled=False):
    customer = customer or await make_customer(store)
    mechanic = mechanic or await make_mechanic(store)
    request = await make_request(store, customer, is_scheduled=is_scheduled)
    proposal = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)
    booking = await bookings.accept_proposal(store, notifier, customer.id, proposal.id)
    return customer, mechanic, booking


def test_transition_table():
    assert can_transition(BookingStatus.SCHEDULED, BookingStatus.CONFIRMED)
    assert can_transition(BookingStatus.SCHEDULED, BookingStatus.ONGOING)
    assert can_transition(BookingStatus.CONFIRMED, BookingStatus.ONGOING)
    assert can_transition(BookingStatus.ONGOING, BookingStatus.COMPLETED)
    assert not can_transition(BookingStatus.CONFIRMED, BookingStatus.SCHEDULED)
    assert not can_transition(BookingStatus.ONGOING, BookingStatus.CONFIRMED)
    assert ALLOWED_TRANSITIONS[BookingStatus.COMPLETED] == set()
    assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == set()


async def test_islamabad_request_to_review(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store, location=NEAR_ISLAMABAD, balance=5)
    rival = await make_mechanic(store, name="Rival Mechanic", email="rival@example.com", location=(33.69, 73.06))

    created = await create_service_request(store, notifier, customer.id, ServiceRequestCreate(
        category="car_mechanic",
        description="Engine overheating",
        location={"latitude": ISLAMABAD[0], "longitude": ISLAMABAD[1], "address": "F-7 Markaz"},
    ))
    request = created.request
    assert created.matched_mechanics == 2

    winning = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)
    losing = await proposals.submit_proposal(store, notifier, rival.id, request.id, ProposalCreate(price=3000, estimated_time="1 hour"))
    assert winning.distance_km == 1.7
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 4

    booking = await bookings.accept_proposal(store, notifier, customer.id, winning.id)
    assert booking.status == BookingStatus.ONGOING
    assert booking.started_at is not None
    assert booking.price == 2500
    assert booking.customer_location.latitude == ISLAMABAD[0]
    assert (await get_request(store, request.id)).status == RequestStatus.MATCHED
    assert (await get_proposal(store, winning.id)).status == ProposalStatus.ACCEPTED
    assert (await get_proposal(store, losing.id)).status == ProposalStatus.REJECTED
    assert notifier.sent_to(mechanic.id, NotificationType.PROPOSAL_ACCEPTED)
    assert notifier.sent_to(rival.id, NotificationType.PROPOSAL_REJECTED)
    assert (await bookings.get_active_booking(store, customer.id, "customer")).id == booking.id
    assert (await bookings.get_active_booking(store, mechanic.id, "mechanic")).id == booking.id

    on_the_way = await bookings.update_live_location(store, notifier, mechanic.id, booking.id, point(NEAR_ISLAMABAD))
    assert on_the_way.arrived is False
    assert on_the_way.distance_km == pytest.approx(1.75, abs=0.01)

    arrived = await bookings.update_live_location(store, notifier, mechanic.id, booking.id, point(ISLAMABAD))
    assert arrived.arrived is True
    await bookings.update_live_location(store, notifier, mechanic.id, booking.id, point((33.6845, 73.0479)))
    assert len(notifier.sent_to(customer.id, NotificationType.MECHANIC_ARRIVED)) == 1
    tracked = await bookings.get_booking(store, booking.id)
    assert tracked.status == BookingStatus.ONGOING
    assert tracked.arrived_at is not None

    completed = await bookings.complete_job(store, notifier, mechanic.id, booking.id)
    assert completed.status == BookingStatus.COMPLETED
    assert completed.completed_at is not None
    profile = await get_mechanic(store, mechanic.id)
    assert profile.completed_jobs == 1
    assert profile.total_earnings == 2500
    assert await bookings.get_active_booking(store, customer.id, "customer") is None

    with pytest.raises(InvalidState):
        await bookings.cancel_booking(store, notifier, {"id": customer.id, "type": "customer"}, booking.id)

    review = await reviews.submit_review(store, notifier, customer.id, ReviewCreate(booking_id=booking.id, rating=4, comment="Quick fix"))
    assert review.rating == 4
    profile = await get_mechanic(store, mechanic.id)
    assert (profile.rating_count, profile.average_rating) == (1, 4.0)


async def test_immediate_acceptance_blocked_by_ongoing_job(store, notifier):
    _, mechanic, _ = await _booked(store, notifier)
    other_customer = await make_customer(store, name="Second Customer")
    request = await make_request(store, other_customer)
    proposal = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)

    with pytest.raises(InvalidState):
        await bookings.accept_proposal(store, notifier, other_customer.id, proposal.id)

    assert (await get_proposal(store, proposal.id)).status == ProposalStatus.PENDING
    assert (await get_request(store, request.id)).status == RequestStatus.PENDING
    assert await bookings.list_bookings(store, other_customer.id, "customer") == []


async def test_accept_requires_owner_and_pending_request(store, notifier):
    customer = await make_customer(store)
    stranger = await make_customer(store, name="Stranger Danger")
    mechanic = await make_mechanic(store)
    request = await make_request(store, customer)
    proposal = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)

    with pytest.raises(Forbidden):
        await bookings.accept_proposal(store, notifier, stranger.id, proposal.id)

    await bookings.accept_proposal(store, notifier, customer.id, proposal.id)
    with pytest.raises(InvalidState):
        await bookings.accept_proposal(store, notifier, customer.id, proposal.id)


async def test_scheduled_booking_lifecycle(store, notifier):
    customer, mechanic, booking = await _booked(store, notifier, is_scheduled=True)
    assert booking.status == BookingStatus.SCHEDULED
    assert booking.started_at is None
    assert booking.scheduled_date is not None

    with pytest.raises(InvalidState):
        await bookings.complete_job(store, notifier, mechanic.id, booking.id)
    with pytest.raises(InvalidState):
        await bookings.update_live_location(store, notifier, mechanic.id, booking.id, point(ISLAMABAD))

    confirmed = await bookings.confirm_booking(store, notifier, mechanic.id, booking.id)
    assert confirmed.status == BookingStatus.CONFIRMED
    with pytest.raises(InvalidState):
        await bookings.confirm_booking(store, notifier, mechanic.id, booking.id)

    moved = await bookings.reschedule_booking(
        store, notifier, customer.id, booking.id,
        BookingReschedule(scheduled_date="2026-01-22", scheduled_time="4:00 PM")
    )
    assert moved.status == BookingStatus.CONFIRMED
    assert moved.scheduled_time == "4:00 PM"
    assert notifier.sent_to(mechanic.id, NotificationType.BOOKING_RESCHEDULED)

    started = await bookings.start_job(store, notifier, mechanic.id, booking.id)
    assert started.status == BookingStatus.ONGOING
    assert started.started_at is not None

    with pytest.raises(InvalidState):
        await bookings.reschedule_booking(
            store, notifier, customer.id, booking.id,
            BookingReschedule(scheduled_date="2026-01-23", scheduled_time="9:00 AM")
        )


async def test_stale_transition_loses_the_race(store, notifier):
    customer, mechanic, booking = await _booked(store, notifier, is_scheduled=True)
    stale = await bookings.get_booking(store, booking.id)
    await bookings.confirm_booking(store, notifier, mechanic.id, booking.id)

    with pytest.raises(InvalidState):
        await bookings._transition(store, stale, BookingStatus.CANCELLED)
    assert (await bookings.get_booking(store, booking.id)).status == BookingStatus.CONFIRMED


async def test_either_party_cancels_and_the_other_is_told(store, notifier):
    customer, mechanic, booking = await _booked(store, notifier)

    with pytest.raises(Forbidden):
        await bookings.cancel_booking(store, notifier, {"id": "someone", "type": "customer"}, booking.id)

    cancelled = await bookings.cancel_booking(
        store, notifier, {"id": mechanic.id, "type": "mechanic"}, booking.id, "Vehicle broke down"
    )
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_by == "mechanic"
    assert cancelled.cancellation_reason == "Vehicle broke down"
    assert cancelled.cancelled_at is not None
    assert notifier.sent_to(customer.id, NotificationType.BOOKING_CANCELLED)
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 4


async def test_only_assigned_mechanic_updates_booking(store, notifier):
    _, _, booking = await _booked(store, notifier)
    intruder = await make_mechanic(store, name="Intruder Mechanic", email="intruder@example.com")

    with pytest.raises(Forbidden):
        await bookings.complete_job(store, notifier, intruder.id, booking.id)
    with pytest.raises(Forbidden):
        await bookings.get_booking_for(store, {"id": intruder.id, "type": "mechanic"}, booking.id)


async def test_list_bookings_by_role_and_status(store, notifier):
    customer, mechanic, booking = await _booked(store, notifier)
    await bookings.complete_job(store, notifier, mechanic.id, booking.id)
    _, _, second = await _booked(store, notifier, customer=customer, mechanic=mechanic)

    assert [b.id for b in await bookings.list_bookings(store, mechanic.id, "mechanic", "ongoing")] == [second.id]
    assert len(await bookings.list_bookings(store, customer.id, "customer")) == 2
