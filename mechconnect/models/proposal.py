# mechconnect/models/proposal.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum

class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

class ProposalCreate(BaseModel):
    price: float = Field(..., gt=0)
    estimated_time: str = Field(..., min_length=1)
    message: str = ""

class Proposal(BaseModel):
    id: str
    request_id: str
    customer_id: str
    mechanic_id: str
    mechanic_name: str
    mechanic_rating: float = 0.0
    mechanic_rating_count: int = 0
    price: float
    estimated_time: str
    message: str = ""
    distance_km: Optional[float] = None
    status: ProposalStatus
    created_at: datetime
