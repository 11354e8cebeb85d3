import asyncio

import pytest

from mechconnect.errors import InsufficientBalance, InvalidState, NotFound
from mechconnect.models import NotificationType, PaymentMethod, TransactionStatus, TransactionType
from mechconnect.queries import get_mechanic
from mechconnect.services import wallet
from tests.conftest import make_mechanic


async def test_concurrent_debits_never_overdraw(store):
    mechanic = await make_mechanic(store, balance=0)
    await wallet.credit(store, mechanic.id, 3, TransactionType.PURCHASE)

    results = await asyncio.gather(
        *[wallet.debit(store, mechanic.id, 1) for _ in range(10)],
        return_exceptions=True
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 3
    assert all(isinstance(r, InsufficientBalance) for r in results if isinstance(r, Exception))
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 0
    assert await wallet.ledger_balance(store, mechanic.id) == 0


async def test_debit_short_balance_writes_nothing(store):
    mechanic = await make_mechanic(store, balance=0)
    with pytest.raises(InsufficientBalance):
        await wallet.debit(store, mechanic.id, 1)
    assert (await wallet.get_wallet(store, mechanic.id)).transactions == []


async def test_credit_rejects_deduction_type(store):
    mechanic = await make_mechanic(store)
    with pytest.raises(ValueError):
        await wallet.credit(store, mechanic.id, 1, TransactionType.DEDUCTION)


async def test_packages_catalogue():
    packages = wallet.list_packages()
    assert [(p.diamonds, p.price) for p in packages] == [(10, 500), (25, 1000), (50, 1800), (100, 3200)]
    with pytest.raises(NotFound):
        wallet.get_package("1000_diamonds")


async def test_purchase_credits_exactly_once(store, notifier):
    mechanic = await make_mechanic(store, balance=2)
    pending = await wallet.start_purchase(store, mechanic.id, "25_diamonds", PaymentMethod.JAZZCASH)

    assert pending.status == TransactionStatus.PENDING
    assert pending.price_pkr == 1000
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 2

    confirmed = await wallet.confirm_purchase(store, notifier, pending.id, "JC-123456")
    assert confirmed.status == TransactionStatus.COMPLETED
    assert confirmed.payment_reference == "JC-123456"

    with pytest.raises(InvalidState):
        await wallet.confirm_purchase(store, notifier, pending.id, "JC-123456")
    with pytest.raises(InvalidState):
        await wallet.fail_purchase(store, pending.id)

    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 27
    assert notifier.sent_to(mechanic.id, NotificationType.DIAMOND_PURCHASED)


async def test_concurrent_confirmations_credit_once(store, notifier):
    mechanic = await make_mechanic(store, balance=0)
    pending = await wallet.start_purchase(store, mechanic.id, "10_diamonds", PaymentMethod.EASYPAISA)

    results = await asyncio.gather(
        wallet.confirm_purchase(store, notifier, pending.id, "EP-1"),
        wallet.confirm_purchase(store, notifier, pending.id, "EP-1"),
        return_exceptions=True
    )

    assert sum(1 for r in results if isinstance(r, InvalidState)) == 1
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 10


async def test_failed_purchase_never_credits(store):
    mechanic = await make_mechanic(store, balance=0)
    pending = await wallet.start_purchase(store, mechanic.id, "10_diamonds", PaymentMethod.EASYPAISA)

    failed = await wallet.fail_purchase(store, pending.id, "EP-declined")

    assert failed.status == TransactionStatus.FAILED
    assert (await get_mechanic(store, mechanic.id)).diamond_balance == 0
    assert await wallet.ledger_balance(store, mechanic.id) == 0


async def test_unknown_purchase(store, notifier):
    with pytest.raises(NotFound):
        await wallet.confirm_purchase(store, notifier, "missing", "ref")
