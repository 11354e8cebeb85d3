from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

class ReviewCreate(BaseModel):
    booking_id: str
    rating: int = Field(..., ge=1, le=5, description="Rating between 1 and 5")
    comment: Optional[str] = None

class Review(BaseModel):
    id: str
    booking_id: str
    mechanic_id: str
    customer_id: str
    customer_name: str
    rating: int
    comment: Optional[str] = None
    created_at: datetime

class MechanicReviews(BaseModel):
    average_rating: float
    total_reviews: int
    reviews: list[Review]
