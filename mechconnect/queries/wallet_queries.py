# mechconnect/queries/wallet_queries.py
from typing import List, Optional

from ..models.wallet import Transaction, TransactionStatus, TransactionType
from ..store import DocumentStore

TRANSACTIONS = "transactions"

async def create_transaction(
    store: DocumentStore,
    user_id: str,
    type: TransactionType,
    amount: int,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    **details
) -> Transaction:
    """Append a wallet ledger entry"""
    transaction_id = await store.add(TRANSACTIONS, {
        "user_id": user_id,
        "type": type.value,
        "amount": amount,
        "status": status.value,
        "payment_method": None,
        "payment_reference": None,
        "package_id": None,
        "price_pkr": None,
        "related_booking_id": None,
        "related_request_id": None,
        **details,
    })
    return await get_transaction(store, transaction_id)

async def get_transaction(store: DocumentStore, transaction_id: str) -> Optional[Transaction]:
    doc = await store.get(TRANSACTIONS, transaction_id)
    return Transaction(**doc) if doc else None

async def update_transaction(
    store: DocumentStore,
    transaction_id: str,
    expect_status: TransactionStatus,
    **changes
) -> Optional[Transaction]:
    doc = await store.update(TRANSACTIONS, transaction_id, changes, expect={"status": expect_status.value})
    return Transaction(**doc) if doc else None

async def list_transactions(
    store: DocumentStore,
    user_id: str,
    status: Optional[TransactionStatus] = None,
    limit: Optional[int] = 50
) -> List[Transaction]:
    filters = [("user_id", "==", user_id)]
    if status:
        filters.append(("status", "==", status.value))
    docs = await store.query(TRANSACTIONS, filters, order_by="created_at", descending=True, limit=limit)
    return [Transaction(**doc) for doc in docs]
