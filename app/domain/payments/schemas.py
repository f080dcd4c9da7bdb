"""Payment domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import PaymentStatus
from ...security_utils import sanitize_text


class PaymentCreate(BaseModel):
    appointment_id: int


class PaymentRefund(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        v = sanitize_text(v or "")
        if not v:
            raise ValueError("A refund reason is required")
        if len(v) > 500:
            raise ValueError("Reason must be at most 500 characters")
        return v


class CheckoutResponse(BaseModel):
    id: int
    appointment_id: int
    checkout_url: Optional[str] = None
    amount: float
    currency: str
    status: PaymentStatus


class PaymentResponse(BaseModel):
    id: int
    appointment_id: int
    amount: float
    currency: str
    status: PaymentStatus
    provider_payment_id: Optional[str] = None
    checkout_url: Optional[str] = None
    processed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProcessPaymentResponse(BaseModel):
    success: bool
    status: PaymentStatus
    message: str
    payment: PaymentResponse


class MonthlyEarnings(BaseModel):
    year: int
    month: int
    earnings: float
    appointments: int


class DoctorEarnings(BaseModel):
    total_earnings: float
    total_appointments: int
    monthly_breakdown: list[MonthlyEarnings]
