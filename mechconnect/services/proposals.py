# mechconnect/services/proposals.py
import logging
from typing import Callable, Iterable, List, Set

from ..config import settings
from ..errors import DuplicateProposal, Forbidden, InvalidState, NotFound
from ..models.notification import NotificationType
from ..models.proposal import Proposal, ProposalCreate, ProposalStatus
from ..models.service_request import RequestStatus, ServiceRequest
from ..queries import proposal_queries
from ..queries.mechanic_queries import get_mechanic
from ..queries.request_queries import get_request
from ..store import DocumentStore, DuplicateDocument, Subscription
from ..utils.haversine import calculate_distance
from .notifier import Notifier
from .wallet import debit

logger = logging.getLogger(__name__)

async def submit_proposal(
    store: DocumentStore,
    notifier: Notifier,
    mechanic_id: str,
    request_id: str,
    payload: ProposalCreate
) -> Proposal:
    """Send a priced offer for a pending request.

    Only approved mechanics may bid, and only on requests in their own
    categories. The diamond debit and the proposal are written together: a
    short balance writes nothing, and a second proposal for the same request
    is rejected with the debit rolled back.
    """
    async with store.transaction() as tx:
        request = await get_request(tx, request_id)
        if not request:
            raise NotFound.resource("Service request")
        if request.status != RequestStatus.PENDING:
            raise InvalidState("Request is no longer accepting proposals")

        mechanic = await get_mechanic(tx, mechanic_id)
        if not mechanic:
            raise NotFound.resource("Mechanic")
        if not mechanic.is_eligible:
            raise Forbidden("Mechanic is not approved to receive requests")
        if request.category not in mechanic.categories:
            raise Forbidden("Request is outside the mechanic's service categories")

        await debit(tx, mechanic_id, settings.diamond_cost_per_proposal, related_request_id=request_id)

        distance = None
        if mechanic.location is not None:
            distance = calculate_distance(mechanic.location.as_tuple(), request.location.as_tuple())

        try:
            proposal = await proposal_queries.create_proposal(tx, {
                "request_id": request_id,
                "customer_id": request.customer_id,
                "mechanic_id": mechanic_id,
                "mechanic_name": mechanic.name,
                "mechanic_rating": mechanic.average_rating,
                "mechanic_rating_count": mechanic.rating_count,
                "price": payload.price,
                "estimated_time": payload.estimated_time,
                "message": payload.message,
                "distance_km": distance,
            })
        except DuplicateDocument:
            raise DuplicateProposal()

    logger.info(f"Proposal {proposal.id} from {mechanic_id} on request {request_id}")
    await notifier.send(
        request.customer_id,
        NotificationType.NEW_PROPOSAL,
        "New proposal",
        f"{mechanic.name} offered Rs. {payload.price:g} ({payload.estimated_time})",
        {"request_id": request_id, "proposal_id": proposal.id}
    )
    return proposal

async def get_proposal(store: DocumentStore, proposal_id: str) -> Proposal:
    proposal = await proposal_queries.get_proposal(store, proposal_id)
    if not proposal:
        raise NotFound.resource("Proposal")
    return proposal

async def list_proposals_for_request(store: DocumentStore, request_id: str) -> List[Proposal]:
    return await proposal_queries.list_proposals_for_request(store, request_id)

async def subscribe_to_proposals(
    store: DocumentStore,
    request_id: str,
    callback: Callable[[List[Proposal]], None]
) -> Subscription:
    return await store.subscribe(
        proposal_queries.PROPOSALS,
        lambda docs: callback([Proposal(**doc) for doc in docs]),
        [("request_id", "==", request_id)],
        order_by="created_at",
        descending=True
    )

def filter_unanswered_requests(requests: Iterable[ServiceRequest], answered_request_ids: Set[str]) -> List[ServiceRequest]:
    return [request for request in requests if request.id not in answered_request_ids]

async def list_answered_request_ids(store: DocumentStore, mechanic_id: str) -> Set[str]:
    return await proposal_queries.list_answered_request_ids(store, mechanic_id)

async def decline_proposal(store: DocumentStore, notifier: Notifier, customer_id: str, proposal_id: str) -> Proposal:
    proposal = await get_proposal(store, proposal_id)
    if proposal.customer_id != customer_id:
        raise Forbidden("Not authorized to decline this proposal")
    declined = await proposal_queries.update_proposal_status(
        store, proposal_id, ProposalStatus.REJECTED, expect_status=ProposalStatus.PENDING
    )
    if declined is None:
        raise InvalidState("Proposal is no longer pending")

    await notifier.send(
        proposal.mechanic_id,
        NotificationType.PROPOSAL_REJECTED,
        "Proposal declined",
        "The customer declined your proposal",
        {"request_id": proposal.request_id, "proposal_id": proposal_id}
    )
    return declined

async def reject_pending_proposals(store: DocumentStore, request_id: str) -> List[Proposal]:
    """Flip every still-pending proposal on the request to rejected; returns those flipped"""
    rejected = []
    for proposal in await proposal_queries.list_proposals_for_request(store, request_id, ProposalStatus.PENDING):
        if await proposal_queries.update_proposal_status(
            store, proposal.id, ProposalStatus.REJECTED, expect_status=ProposalStatus.PENDING
        ):
            rejected.append(proposal)
    return rejected

async def notify_rejected_proposals(notifier: Notifier, proposals: Iterable[Proposal], title: str, body: str) -> None:
    for proposal in proposals:
        await notifier.send(
            proposal.mechanic_id,
            NotificationType.PROPOSAL_REJECTED,
            title,
            body,
            {"request_id": proposal.request_id, "proposal_id": proposal.id}
        )
