import asyncio

import pytest

from mechconnect.errors import DuplicateProposal, Forbidden, InsufficientBalance, InvalidState, NotFound
from mechconnect.models import NotificationType, ProposalCreate, ProposalStatus
from mechconnect.queries import get_mechanic, list_transactions
from mechconnect.services import proposals
from mechconnect.services.requests import cancel_request
from tests.conftest import make_customer, make_mechanic, make_request

OFFER = ProposalCreate(price=2500, estimated_time="45 min", message="Can come with a spare battery")


async def test_submit_debits_one_diamond_and_snapshots_distance(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store, balance=5)
    request = await make_request(store, customer)

    proposal = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)

    assert proposal.status == ProposalStatus.PENDING
    assert proposal.customer_id == customer.id
    assert proposal.distance_km == 1.7
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 4
    ledger = await list_transactions(store, mechanic.id)
    assert [(t.type.value, t.amount, t.related_request_id) for t in ledger] == [("deduction", 1, request.id)]
    assert notifier.sent_to(customer.id, NotificationType.NEW_PROPOSAL)


async def test_insufficient_balance_writes_nothing(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store, balance=0)
    request = await make_request(store, customer)

    with pytest.raises(InsufficientBalance):
        await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)

    assert await proposals.list_proposals_for_request(store, request.id) == []
    assert await list_transactions(store, mechanic.id) == []
    assert notifier.sent == []


async def test_concurrent_duplicate_submissions_record_one(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store, balance=5)
    request = await make_request(store, customer)

    results = await asyncio.gather(
        proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER),
        proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER),
        return_exceptions=True
    )

    assert sum(1 for r in results if isinstance(r, DuplicateProposal)) == 1
    assert len(await proposals.list_proposals_for_request(store, request.id)) == 1
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 4
    assert len(await list_transactions(store, mechanic.id)) == 1


async def test_closed_or_missing_request_is_rejected(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store, balance=5)
    request = await make_request(store, customer)
    await cancel_request(store, notifier, customer.id, request.id)

    with pytest.raises(InvalidState):
        await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)
    with pytest.raises(NotFound):
        await proposals.submit_proposal(store, notifier, mechanic.id, "missing", OFFER)
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 5


async def test_proposals_listed_newest_first_and_pushed_live(store, notifier, clock):
    customer = await make_customer(store)
    first = await make_mechanic(store, name="First Mechanic", email="first@example.com")
    second = await make_mechanic(store, name="Second Mechanic", email="second@example.com")
    request = await make_request(store, customer)
    snapshots = []
    subscription = await proposals.subscribe_to_proposals(store, request.id, snapshots.append)

    await proposals.submit_proposal(store, notifier, first.id, request.id, OFFER)
    clock.advance(minutes=1)
    await proposals.submit_proposal(store, notifier, second.id, request.id, OFFER)

    listed = await proposals.list_proposals_for_request(store, request.id)
    assert [p.mechanic_id for p in listed] == [second.id, first.id]
    assert [p.mechanic_id for p in snapshots[-1]] == [second.id, first.id]
    await subscription.close()


async def test_filter_unanswered_requests(store, notifier):
    customer = await make_customer(store)
    mechanic = await make_mechanic(store)
    answered = await make_request(store, customer)
    fresh = await make_request(store, customer)
    await proposals.submit_proposal(store, notifier, mechanic.id, answered.id, OFFER)

    answered_ids = await proposals.list_answered_request_ids(store, mechanic.id)
    assert answered_ids == {answered.id}
    assert proposals.filter_unanswered_requests([answered, fresh], answered_ids) == [fresh]
    assert proposals.filter_unanswered_requests([answered, fresh], set()) == [answered, fresh]


async def test_decline_proposal(store, notifier):
    customer = await make_customer(store)
    stranger = await make_customer(store, name="Other Person")
    mechanic = await make_mechanic(store)
    request = await make_request(store, customer)
    proposal = await proposals.submit_proposal(store, notifier, mechanic.id, request.id, OFFER)

    with pytest.raises(Forbidden):
        await proposals.decline_proposal(store, notifier, stranger.id, proposal.id)

    declined = await proposals.decline_proposal(store, notifier, customer.id, proposal.id)
    assert declined.status == ProposalStatus.REJECTED
    assert notifier.sent_to(mechanic.id, NotificationType.PROPOSAL_REJECTED)

    with pytest.raises(InvalidState):
        await proposals.decline_proposal(store, notifier, customer.id, proposal.id)


async def test_unapproved_mechanic_cannot_bid(store, notifier):
    customer = await make_customer(store)
    pending = await make_mechanic(store, name="Pending Kyc", approved=False, balance=5)
    request = await make_request(store, customer)

    with pytest.raises(Forbidden):
        await proposals.submit_proposal(store, notifier, pending.id, request.id, OFFER)

    assert (await get_mechanic(store, pending.id)).diamond_balance == 5
    assert await list_transactions(store, pending.id) == []
    assert await proposals.list_proposals_for_request(store, request.id) == []


async def test_mechanic_cannot_bid_outside_their_categories(store, notifier):
    customer = await make_customer(store)
    plumber = await make_mechanic(store, name="Plumber Raza", categories=["plumber"], balance=5)
    request = await make_request(store, customer, category="car_mechanic")

    with pytest.raises(Forbidden):
        await proposals.submit_proposal(store, notifier, plumber.id, request.id, OFFER)

    assert (await get_mechanic(store, plumber.id)).diamond_balance == 5
    assert notifier.sent_to(customer.id, NotificationType.NEW_PROPOSAL) == []
