# mechconnect/queries/review_queries.py
from typing import List, Optional

from ..models.review import Review
from ..store import DocumentStore

REVIEWS = "reviews"

async def create_review(
    store: DocumentStore,
    booking_id: str,
    mechanic_id: str,
    customer_id: str,
    customer_name: str,
    rating: int,
    comment: Optional[str] = None
) -> Review:
    """Create a new review"""
    review_id = await store.add(REVIEWS, {
        "booking_id": booking_id,
        "mechanic_id": mechanic_id,
        "customer_id": customer_id,
        "customer_name": customer_name,
        "rating": rating,
        "comment": comment,
    })
    return Review(**await store.get(REVIEWS, review_id))

async def list_mechanic_reviews(store: DocumentStore, mechanic_id: str) -> List[Review]:
    """Get all reviews for a mechanic, newest first"""
    docs = await store.query(
        REVIEWS,
        [("mechanic_id", "==", mechanic_id)],
        order_by="created_at",
        descending=True
    )
    return [Review(**doc) for doc in docs]
