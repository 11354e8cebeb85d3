# mechconnect/queries/customer_queries.py
from typing import Any, Dict, Optional

from ..models.auth import CustomerCreate
from ..models.customer import Customer
from ..store import DocumentStore

CUSTOMERS = "customers"

async def create_customer(store: DocumentStore, payload: CustomerCreate, password_hash: str) -> Customer:
    customer_id = await store.add(CUSTOMERS, {
        "name": payload.name,
        "email": payload.email.lower(),
        "phone": payload.phone,
        "password_hash": password_hash,
    })
    return await get_customer(store, customer_id)

async def get_customer(store: DocumentStore, customer_id: str) -> Optional[Customer]:
    doc = await store.get(CUSTOMERS, customer_id)
    return Customer(**doc) if doc else None

async def get_customer_credentials(store: DocumentStore, email: str) -> Optional[Dict[str, Any]]:
    """Raw customer document (including password hash) by email"""
    docs = await store.query(CUSTOMERS, [("email", "==", email.lower())], limit=1)
    return docs[0] if docs else None
