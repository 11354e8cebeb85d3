# mechconnect/routes/admin.py
import logging
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ..database import get_store
from ..errors import NotFound
from ..models.mechanic import KycDecision, KycStatus, MechanicOut
from ..models.notification import NotificationType
from ..models.wallet import PurchaseConfirmation, RefundCreate, Transaction
from ..queries.mechanic_queries import get_mechanic, update_mechanic
from ..services import requests as request_service
from ..services import wallet as wallet_service
from ..services.notifier import Notifier, get_notifier
from ..store import DocumentStore
from ..utils.auth import require_admin

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

@admin_router.put("/mechanics/{mechanic_id}/kyc", response_model=MechanicOut)
async def decide_kyc(
    mechanic_id: str,
    decision: KycDecision,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    if not await get_mechanic(store, mechanic_id):
        raise NotFound.resource("Mechanic")

    approved = decision.status == KycStatus.APPROVED
    mechanic = await update_mechanic(
        store,
        mechanic_id,
        kyc_status=decision.status.value,
        is_verified=approved,
        kyc_rejection_reason=None if approved else decision.reason
    )
    logger.info(f"KYC for mechanic {mechanic_id} set to {decision.status.value}")

    if approved:
        await notifier.send(mechanic_id, NotificationType.KYC_APPROVED, "KYC approved",
                            "Your documents were verified. You can now receive requests.")
    elif decision.status == KycStatus.REJECTED:
        await notifier.send(mechanic_id, NotificationType.KYC_REJECTED, "KYC rejected",
                            decision.reason or "Your documents could not be verified")
    return MechanicOut.from_mechanic(mechanic)

@admin_router.post("/requests/expire")
async def expire_requests(
    older_than_minutes: Optional[int] = Query(None, gt=0),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    expired = await request_service.expire_stale_requests(store, notifier, older_than_minutes)
    return {"expired": expired}

@admin_router.post("/refunds", response_model=Transaction)
async def refund_booking(
    payload: RefundCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await wallet_service.refund_for_booking(store, notifier, payload.booking_id)

@admin_router.post("/purchases/{transaction_id}/confirm", response_model=Transaction)
async def confirm_purchase(
    transaction_id: str,
    payload: PurchaseConfirmation,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    """Gateway callback once a JazzCash / EasyPaisa payment has been verified"""
    return await wallet_service.confirm_purchase(store, notifier, transaction_id, payload.payment_reference)

@admin_router.post("/purchases/{transaction_id}/fail", response_model=Transaction)
async def fail_purchase(
    transaction_id: str,
    store: DocumentStore = Depends(get_store)
):
    return await wallet_service.fail_purchase(store, transaction_id)
