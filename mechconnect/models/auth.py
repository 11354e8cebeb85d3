# mechconnect/models/auth.py
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

from .common import GeoPoint, ServiceCategory

class Token(BaseModel):
    access_token: str
    token_type: str
    user_type: Optional[str] = None

class TokenData(BaseModel):
    id: Optional[str] = None
    type: Optional[str] = None

class CustomerCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    password: str = Field(..., min_length=6)

class MechanicCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    password: str = Field(..., min_length=6)
    categories: List[ServiceCategory] = Field(..., min_length=1)
    location: Optional[GeoPoint] = None
