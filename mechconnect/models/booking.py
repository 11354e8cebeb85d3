# mechconnect/models/booking.py
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from enum import Enum

from .common import Address, GeoPoint, ServiceCategory

class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Booking(BaseModel):
    id: str
    customer_id: str
    customer_name: Optional[str] = None
    mechanic_id: str
    mechanic_name: Optional[str] = None
    request_id: str
    proposal_id: str
    category: ServiceCategory
    customer_location: Address
    mechanic_location: Optional[GeoPoint] = None
    price: float
    estimated_time: str
    status: BookingStatus
    is_scheduled: bool = False
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    started_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    is_reviewed: bool = False
    rating: Optional[int] = None
    review_comment: Optional[str] = None
    created_at: datetime

class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Reason for cancellation")

class BookingReschedule(BaseModel):
    scheduled_date: date
    scheduled_time: str = Field(..., min_length=1)

class LocationUpdateOut(BaseModel):
    booking_id: str
    distance_km: float
    arrived: bool

class RouteInfo(BaseModel):
    distance_km: float
    duration_minutes: float
    points: List[GeoPoint]
