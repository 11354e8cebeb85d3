# mechconnect/routes/reviews.py
from fastapi import APIRouter, Depends, Query, status

from ..database import get_store
from ..models.review import MechanicReviews, Review, ReviewCreate
from ..services import reviews as review_service
from ..services.notifier import Notifier, get_notifier
from ..store import DocumentStore
from ..utils.auth import require_customer

reviews_router = APIRouter(prefix="/reviews", tags=["Reviews"])

@reviews_router.post("/", response_model=Review, status_code=status.HTTP_201_CREATED)
async def create_review(
    review: ReviewCreate,
    current_user: dict = Depends(require_customer),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier)
):
    return await review_service.submit_review(store, notifier, current_user["id"], review)

@reviews_router.get("/mechanic/{mechanic_id}", response_model=MechanicReviews)
async def get_mechanic_reviews(
    mechanic_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    store: DocumentStore = Depends(get_store)
):
    return await review_service.get_mechanic_reviews(store, mechanic_id, page, per_page)
