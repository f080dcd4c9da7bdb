"""Admin schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from ...models import AppointmentStatus, PaymentStatus, UserRole


class UserAnalytics(BaseModel):
    total_users: int
    by_role: dict[str, int]
    new_this_month: int
    active_users: int
    pending_doctor_verifications: int


class AppointmentAnalytics(BaseModel):
    total_appointments: int
    by_status: dict[str, int]
    this_month: int
    upcoming: int
    completed: int
    cancelled: int
    average_per_day_this_month: float


class MonthlyRevenue(BaseModel):
    year: int
    month: int
    revenue: float


class PaymentAnalytics(BaseModel):
    total_revenue: float
    revenue_this_month: float
    average_transaction: float
    transaction_count: int
    by_status: dict[str, int]
    monthly_revenue: list[MonthlyRevenue]


class RatingAnalytics(BaseModel):
    average_doctor_rating: float
    total_reviews: int
    rating_distribution: dict[int, int]


class SystemAnalytics(BaseModel):
    users: UserAnalytics
    appointments: AppointmentAnalytics
    payments: PaymentAnalytics
    ratings: RatingAnalytics
    generated_at: datetime


class AdminUserResponse(BaseModel):
    id: int
    email: str
    role: UserRole
    name: Optional[str] = None
    is_verified: bool
    is_active: bool
    created_at: Optional[datetime] = None


class UserStatusUpdate(BaseModel):
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


class PaymentTransaction(BaseModel):
    id: int
    appointment_id: int
    amount: float
    currency: str
    status: PaymentStatus
    provider_payment_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    patient_id: int
    patient_name: str
    doctor_id: int
    doctor_name: str
    appointment_status: AppointmentStatus
    scheduled_date_time: datetime


class PaymentReconciliation(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    completed_total: float
    completed_count: int
    refunded_total: float
    refunded_count: int
    failed_total: float
    failed_count: int
    pending_count: int
    gross_revenue: float
    net_revenue: float


class ActivityLogResponse(BaseModel):
    id: int
    admin_id: int
    action: str
    target_type: str
    target_id: Optional[int] = None
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
