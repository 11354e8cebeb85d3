# mechconnect/models/service_request.py
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from typing import List, Optional
from enum import Enum

from .common import Address, ServiceCategory

class RequestStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class ServiceRequestCreate(BaseModel):
    category: ServiceCategory
    description: str = Field(..., min_length=1, max_length=1000)
    location: Address
    urgency: Urgency = Urgency.MEDIUM
    is_scheduled: bool = False
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    images: List[str] = []
    voice_note_url: Optional[str] = None
    budget_min: Optional[float] = Field(None, ge=0)
    budget_max: Optional[float] = Field(None, ge=0)
    offered_price: Optional[float] = Field(None, gt=0)

    @validator("scheduled_date", always=True)
    def scheduled_requests_need_a_date(cls, v, values):
        if values.get("is_scheduled") and v is None:
            raise ValueError("scheduled_date is required for scheduled requests")
        return v

class ServiceRequest(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    customer_phone: Optional[str] = None
    category: ServiceCategory
    description: str
    location: Address
    status: RequestStatus
    urgency: Urgency = Urgency.MEDIUM
    is_scheduled: bool = False
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    images: List[str] = []
    voice_note_url: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    offered_price: Optional[float] = None
    created_at: datetime

class ServiceRequestCreated(BaseModel):
    request: ServiceRequest
    matched_mechanics: int
    warnings: List[str] = []
