# mechconnect/models/customer.py
from datetime import datetime
from pydantic import BaseModel

class Customer(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    created_at: datetime
