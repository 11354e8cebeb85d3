# mechconnect/routes/proposals.py
from fastapi import APIRouter, Depends

from ..database import get_store
from ..models.booking import Booking
from ..models.proposal import Proposal
from ..services import bookings as booking_service
from ..services import proposals as proposal_service
from ..services.notifier import Notifier, get_notifier
from ..store import DocumentStore
from ..utils.auth import require_customer

proposals_router = APIRouter(prefix="/proposals", tags=["Proposals"])

@proposals_router.post("/{proposal_id}/accept", response_model=Booking)
async def accept_proposal(
    proposal_id: str,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await booking_service.accept_proposal(store, notifier, current_user["id"], proposal_id)

@proposals_router.post("/{proposal_id}/decline", response_model=Proposal)
async def decline_proposal(
    proposal_id: str,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await proposal_service.decline_proposal(store, notifier, current_user["id"], proposal_id)
