# mechconnect/routes/wallet.py
from fastapi import APIRouter, Depends, status
from typing import List

from ..database import get_store
from ..models.wallet import DiamondPackage, DiamondPurchase, Transaction, WalletOut
from ..services import wallet as wallet_service
from ..store import DocumentStore
from ..utils.auth import require_mechanic

wallet_router = APIRouter(prefix="/wallet", tags=["Wallet"])

@wallet_router.get("/", response_model=WalletOut)
async def get_wallet(
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    return await wallet_service.get_wallet(store, current_user["id"])

@wallet_router.get("/packages", response_model=List[DiamondPackage])
async def get_packages():
    return wallet_service.list_packages()

@wallet_router.post("/purchase", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def start_purchase(
    payload: DiamondPurchase,
    current_user: dict = Depends(require_mechanic),
    store: DocumentStore = Depends(get_store)
):
    """Open a pending purchase; diamonds are credited once the payment is confirmed"""
    return await wallet_service.start_purchase(store, current_user["id"], payload.package_id, payload.payment_method)
