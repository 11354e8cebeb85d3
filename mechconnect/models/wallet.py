# mechconnect/models/wallet.py
from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

class TransactionType(str, Enum):
    PURCHASE = "purchase"
    DEDUCTION = "deduction"
    REFUND = "refund"

class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class PaymentMethod(str, Enum):
    JAZZCASH = "jazzcash"
    EASYPAISA = "easypaisa"

class Transaction(BaseModel):
    id: str
    user_id: str
    type: TransactionType
    amount: int
    status: TransactionStatus
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    package_id: Optional[str] = None
    price_pkr: Optional[float] = None
    related_booking_id: Optional[str] = None
    related_request_id: Optional[str] = None
    created_at: datetime

class DiamondPackage(BaseModel):
    id: str
    diamonds: int
    price: float
    popular: bool = False
    discount: Optional[str] = None

class DiamondPurchase(BaseModel):
    package_id: str
    payment_method: PaymentMethod

class PurchaseConfirmation(BaseModel):
    payment_reference: str = Field(..., min_length=1)

class RefundCreate(BaseModel):
    booking_id: str

class WalletOut(BaseModel):
    balance: int
    transactions: List[Transaction]
