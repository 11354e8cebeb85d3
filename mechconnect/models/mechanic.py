# mechconnect/models/mechanic.py
from pydantic import BaseModel, Field, validator
from datetime import datetime
from typing import List, Optional
from enum import Enum

from .common import GeoPoint, ServiceCategory

class KycStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Mechanic(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    categories: List[ServiceCategory]
    location: Optional[GeoPoint] = None
    is_verified: bool = False
    kyc_status: KycStatus = KycStatus.PENDING
    kyc_rejection_reason: Optional[str] = None
    diamond_balance: int = 0
    total_rating: float = 0
    rating_count: int = 0
    completed_jobs: int = 0
    total_earnings: float = 0
    is_online: bool = False
    created_at: datetime

    @validator("diamond_balance", pre=True)
    def coerce_balance(cls, v):
        return int(v)

    @property
    def average_rating(self) -> float:
        if not self.rating_count:
            return 0.0
        return round(self.total_rating / self.rating_count, 2)

    @property
    def is_eligible(self) -> bool:
        return self.kyc_status == KycStatus.APPROVED and self.is_verified

class MechanicOut(Mechanic):
    rating: float = 0.0

    @classmethod
    def from_mechanic(cls, mechanic: Mechanic) -> "MechanicOut":
        return cls(**mechanic.model_dump(), rating=mechanic.average_rating)

class NearbyMechanic(BaseModel):
    mechanic_id: str
    name: str
    categories: List[ServiceCategory]
    rating: float
    rating_count: int
    completed_jobs: int
    is_online: bool
    distance_km: float = Field(..., description="Distance from search location in km")

class MechanicStatusUpdate(BaseModel):
    is_online: bool

class KycDecision(BaseModel):
    status: KycStatus
    reason: Optional[str] = None
