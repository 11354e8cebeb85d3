from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict
from enum import Enum

class NotificationType(str, Enum):
    NEW_SERVICE_REQUEST = "new_service_request"
    NEW_PROPOSAL = "new_proposal"
    PROPOSAL_ACCEPTED = "proposal_accepted"
    PROPOSAL_REJECTED = "proposal_rejected"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_STARTED = "booking_started"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    MECHANIC_ARRIVED = "mechanic_arrived"
    NEW_REVIEW = "new_review"
    NEW_MESSAGE = "new_message"
    DIAMOND_PURCHASED = "diamond_purchased"
    DIAMOND_REFUNDED = "diamond_refunded"
    KYC_APPROVED = "kyc_approved"
    KYC_REJECTED = "kyc_rejected"

class Notification(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=500)
    data: Dict[str, Any] = {}
    read: bool = False
    created_at: datetime
