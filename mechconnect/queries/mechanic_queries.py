# mechconnect/queries/mechanic_queries.py
from typing import Any, Dict, List, Optional

from ..models.auth import MechanicCreate
from ..models.mechanic import KycStatus, Mechanic
from ..store import DocumentStore

MECHANICS = "mechanics"

async def create_mechanic(store: DocumentStore, payload: MechanicCreate, password_hash: str) -> Mechanic:
    """Create a mechanic profile; KYC starts pending and the wallet empty"""
    mechanic_id = await store.add(MECHANICS, {
        "name": payload.name,
        "email": payload.email.lower(),
        "phone": payload.phone,
        "password_hash": password_hash,
        "categories": [category.value for category in payload.categories],
        "location": payload.location.model_dump() if payload.location else None,
        "is_verified": False,
        "kyc_status": KycStatus.PENDING.value,
        "kyc_rejection_reason": None,
        "diamond_balance": 0,
        "total_rating": 0,
        "rating_count": 0,
        "completed_jobs": 0,
        "total_earnings": 0,
        "is_online": False,
    })
    return await get_mechanic(store, mechanic_id)

async def get_mechanic(store: DocumentStore, mechanic_id: str) -> Optional[Mechanic]:
    doc = await store.get(MECHANICS, mechanic_id)
    return Mechanic(**doc) if doc else None

async def get_mechanic_credentials(store: DocumentStore, email: str) -> Optional[Dict[str, Any]]:
    """Raw mechanic document (including password hash) by email"""
    docs = await store.query(MECHANICS, [("email", "==", email.lower())], limit=1)
    return docs[0] if docs else None

async def find_eligible_mechanics(store: DocumentStore, category: str, limit: int) -> List[Mechanic]:
    """Approved, verified mechanics offering a category"""
    docs = await store.query(
        MECHANICS,
        [
            ("categories", "array_contains", category),
            ("kyc_status", "==", KycStatus.APPROVED.value),
            ("is_verified", "==", True),
        ],
        limit=limit
    )
    return [Mechanic(**doc) for doc in docs]

async def update_mechanic(store: DocumentStore, mechanic_id: str, **changes) -> Optional[Mechanic]:
    doc = await store.update(MECHANICS, mechanic_id, changes)
    return Mechanic(**doc) if doc else None

async def adjust_diamond_balance(
    store: DocumentStore,
    mechanic_id: str,
    delta: int,
    floor: Optional[int] = None
) -> Optional[int]:
    """Atomically move the diamond balance; None when it would drop below ``floor``"""
    value = await store.increment(MECHANICS, mechanic_id, "diamond_balance", delta, floor=floor)
    return int(value) if value is not None else None

async def increment_counters(store: DocumentStore, mechanic_id: str, **deltas) -> None:
    for field, delta in deltas.items():
        await store.increment(MECHANICS, mechanic_id, field, delta)
