"""Appointment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import AppointmentStatus, AppointmentType, MeetingStatus, PaymentStatus
from ...security_utils import sanitize_text
from ...shared.timeutils import to_naive_utc


def _clean_text(v: Optional[str], max_length: int, field: str) -> Optional[str]:
    if v is None:
        return v
    v = sanitize_text(v)
    if len(v) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters")
    return v or None


class AppointmentCreate(BaseModel):
    doctor_id: int
    scheduled_date_time: datetime
    type: AppointmentType
    notes: Optional[str] = None

    @field_validator("scheduled_date_time")
    @classmethod
    def normalize_datetime(cls, v):
        return to_naive_utc(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return _clean_text(v, 500, "Notes")


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        return _clean_text(v, 500, "Notes")


class AppointmentCancel(BaseModel):
    reason: str
    request_refund: bool = False

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        v = _clean_text(v, 500, "Reason")
        if not v:
            raise ValueError("A cancellation reason is required")
        return v


class AppointmentReschedule(BaseModel):
    new_date_time: datetime
    reason: Optional[str] = None

    @field_validator("new_date_time")
    @classmethod
    def normalize_datetime(cls, v):
        return to_naive_utc(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return _clean_text(v, 500, "Reason")


class AppointmentParty(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentDoctor(AppointmentParty):
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    consultation_fee: Optional[float] = None
    specializations: list[str] = []


class AppointmentPaymentSummary(BaseModel):
    id: int
    amount: float
    currency: str
    status: PaymentStatus
    checkout_url: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentMeetingSummary(BaseModel):
    id: int
    join_url: str
    password: Optional[str] = None
    start_time: datetime
    status: MeetingStatus

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    scheduled_date_time: datetime
    type: AppointmentType
    status: AppointmentStatus
    payment_status: PaymentStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    patient: Optional[AppointmentParty] = None
    doctor: Optional[AppointmentDoctor] = None
    payment: Optional[AppointmentPaymentSummary] = None
    zoom_meeting: Optional[AppointmentMeetingSummary] = None

    class Config:
        from_attributes = True


class AppointmentStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    upcoming_count: int
    completed_count: int
