# serviexpress/schemas/payment.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from serviexpress.db.models.payment import PaymentMethod, PaymentStatus


# --- CREATE ---
class CheckoutInit(BaseModel):
    request_id: int
    amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    method: PaymentMethod
    description: Optional[str] = Field(default=None, max_length=140)
    return_url: str = Field(..., min_length=1)
    notify_url: str = Field(..., min_length=1)
    email: EmailStr


class CheckoutResponse(BaseModel):
    checkoutUrl: str


# --- RESPONSE ---
class PaymentResponse(BaseModel):
    id: int
    request_id: int
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    currency: str
    description: Optional[str] = None
    external_reference: Optional[str] = None
    client_email: Optional[str] = None
    paid_at: datetime
    token_expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
