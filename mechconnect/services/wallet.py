# mechconnect/services/wallet.py
"""Diamond wallet.

The balance lives on the mechanic document and only ever moves through
``store.increment``; a debit carries a floor of 0 so no interleaving of
concurrent debits can overdraw it. Every movement appends a ledger entry in
the same transaction.
"""
import logging
from typing import List, Optional

from ..config import diamond_packages, settings
from ..errors import InsufficientBalance, InvalidState, NotFound
from ..models.notification import NotificationType
from ..models.wallet import (
    DiamondPackage,
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletOut
)
from ..queries.booking_queries import get_booking
from ..queries.mechanic_queries import adjust_diamond_balance, get_mechanic
from ..queries.wallet_queries import (
    TRANSACTIONS,
    create_transaction,
    get_transaction,
    list_transactions,
    update_transaction
)
from ..store import DocumentStore
from .notifier import Notifier

logger = logging.getLogger(__name__)

CREDIT_TYPES = (TransactionType.PURCHASE, TransactionType.REFUND)

async def debit(
    store: DocumentStore,
    mechanic_id: str,
    amount: int,
    related_request_id: Optional[str] = None
) -> Transaction:
    async with store.transaction() as tx:
        balance = await adjust_diamond_balance(tx, mechanic_id, -amount, floor=0)
        if balance is None:
            raise InsufficientBalance()
        entry = await create_transaction(
            tx, mechanic_id, TransactionType.DEDUCTION, amount,
            related_request_id=related_request_id
        )
    logger.info(f"Debited {amount} diamonds from {mechanic_id}, balance {balance}")
    return entry

async def credit(
    store: DocumentStore,
    mechanic_id: str,
    amount: int,
    type: TransactionType = TransactionType.REFUND,
    **details
) -> Transaction:
    if type not in CREDIT_TYPES:
        raise ValueError(f"{type.value} is not a credit")
    async with store.transaction() as tx:
        balance = await adjust_diamond_balance(tx, mechanic_id, amount)
        entry = await create_transaction(tx, mechanic_id, type, amount, **details)
    logger.info(f"Credited {amount} diamonds to {mechanic_id}, balance {balance}")
    return entry

async def refund_for_booking(store: DocumentStore, notifier: Notifier, booking_id: str) -> Transaction:
    """Give the booking's mechanic back one proposal cost, at most once per booking"""
    amount = settings.diamond_cost_per_proposal
    async with store.transaction() as tx:
        booking = await get_booking(tx, booking_id)
        if not booking:
            raise NotFound.resource("Booking")
        await tx.lock(f"refund:{booking_id}")
        existing = await tx.query(TRANSACTIONS, [
            ("related_booking_id", "==", booking_id),
            ("type", "==", TransactionType.REFUND.value),
        ], limit=1)
        if existing:
            raise InvalidState("Booking has already been refunded")
        entry = await credit(tx, booking.mechanic_id, amount, TransactionType.REFUND, related_booking_id=booking_id)

    await notifier.send(
        booking.mechanic_id,
        NotificationType.DIAMOND_REFUNDED,
        "Diamonds refunded",
        f"{amount} diamond(s) were returned to your wallet",
        {"booking_id": booking_id, "transaction_id": entry.id}
    )
    return entry

def list_packages() -> List[DiamondPackage]:
    return [DiamondPackage(**package) for package in diamond_packages]

def get_package(package_id: str) -> DiamondPackage:
    for package in list_packages():
        if package.id == package_id:
            return package
    raise NotFound.resource("Diamond package")

async def start_purchase(
    store: DocumentStore,
    mechanic_id: str,
    package_id: str,
    payment_method: PaymentMethod
) -> Transaction:
    """Record a pending purchase; the balance moves only once the gateway confirms it"""
    package = get_package(package_id)
    if not await get_mechanic(store, mechanic_id):
        raise NotFound.resource("Mechanic")
    entry = await create_transaction(
        store, mechanic_id, TransactionType.PURCHASE, package.diamonds,
        status=TransactionStatus.PENDING,
        payment_method=payment_method.value,
        package_id=package.id,
        price_pkr=package.price
    )
    logger.info(f"Purchase {entry.id} of {package.id} started by {mechanic_id} via {payment_method.value}")
    return entry

async def confirm_purchase(
    store: DocumentStore,
    notifier: Notifier,
    transaction_id: str,
    payment_reference: str
) -> Transaction:
    async with store.transaction() as tx:
        entry = await get_transaction(tx, transaction_id)
        if not entry or entry.type != TransactionType.PURCHASE:
            raise NotFound.resource("Purchase")
        confirmed = await update_transaction(
            tx, transaction_id, TransactionStatus.PENDING,
            status=TransactionStatus.COMPLETED.value,
            payment_reference=payment_reference
        )
        if confirmed is None:
            raise InvalidState(f"Purchase is already {entry.status.value}")
        balance = await adjust_diamond_balance(tx, entry.user_id, entry.amount)

    logger.info(f"Purchase {transaction_id} confirmed, {entry.user_id} balance {balance}")
    await notifier.send(
        entry.user_id,
        NotificationType.DIAMOND_PURCHASED,
        "Diamonds added",
        f"{entry.amount} diamonds were added to your wallet",
        {"transaction_id": transaction_id}
    )
    return confirmed

async def fail_purchase(store: DocumentStore, transaction_id: str, payment_reference: Optional[str] = None) -> Transaction:
    entry = await get_transaction(store, transaction_id)
    if not entry or entry.type != TransactionType.PURCHASE:
        raise NotFound.resource("Purchase")
    failed = await update_transaction(
        store, transaction_id, TransactionStatus.PENDING,
        status=TransactionStatus.FAILED.value,
        payment_reference=payment_reference
    )
    if failed is None:
        raise InvalidState(f"Purchase is already {entry.status.value}")
    logger.warning(f"Purchase {transaction_id} failed")
    return failed

async def get_wallet(store: DocumentStore, mechanic_id: str, limit: int = 50) -> WalletOut:
    mechanic = await get_mechanic(store, mechanic_id)
    if not mechanic:
        raise NotFound.resource("Mechanic")
    transactions = await list_transactions(store, mechanic_id, limit=limit)
    return WalletOut(balance=mechanic.diamond_balance, transactions=transactions)

async def ledger_balance(store: DocumentStore, mechanic_id: str) -> int:
    """Balance folded from completed ledger entries"""
    balance = 0
    for entry in await list_transactions(store, mechanic_id, TransactionStatus.COMPLETED, limit=None):
        if entry.type == TransactionType.DEDUCTION:
            balance -= entry.amount
        else:
            balance += entry.amount
    return balance
