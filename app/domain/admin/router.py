"""Admin router - analytics, user management, verification and payment reports"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import AppointmentStatus, AppointmentType, PaymentStatus, User, UserRole
from ...shared.pagination import Page
from ..appointments.schemas import AppointmentResponse
from ..appointments.service import AppointmentService
from ..doctors.schemas import DoctorPublicResponse, DoctorVerificationRequest, DoctorVerificationResponse
from ..doctors.service import DoctorService
from .schemas import (
    ActivityLogResponse,
    AdminUserResponse,
    PaymentReconciliation,
    PaymentTransaction,
    SystemAnalytics,
    UserStatusUpdate,
)
from .service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


# ============================================================================
# ANALYTICS
# ============================================================================


@router.get("/analytics", response_model=SystemAnalytics)
async def get_system_analytics(
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_system_analytics()


# ============================================================================
# USERS
# ============================================================================


@router.get("/users", response_model=Page[AdminUserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    is_verified: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_users(role, is_active, is_verified, search, page, limit)


@router.patch("/users/{user_id}/status", response_model=AdminUserResponse)
async def update_user_status(
    user_id: int,
    data: UserStatusUpdate,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.update_user_status(user_id, current_user, data.is_active, data.is_verified)


# ============================================================================
# DOCTOR VERIFICATION
# ============================================================================


@router.get("/doctors/pending-verification", response_model=list[DoctorVerificationResponse])
async def get_doctors_pending_verification(
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    return DoctorService(db).get_doctors_pending_verification()


@router.post("/doctors/{doctor_id}/verify", response_model=DoctorPublicResponse)
async def verify_doctor_license(
    doctor_id: int,
    data: DoctorVerificationRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    return await DoctorService(db).verify_doctor_license(doctor_id, data, current_user)


# ============================================================================
# PAYMENTS
# ============================================================================


@router.get("/payments", response_model=Page[PaymentTransaction])
async def get_payment_transactions(
    status: Optional[PaymentStatus] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    min_amount: Optional[float] = Query(None, ge=0),
    max_amount: Optional[float] = Query(None, ge=0),
    doctor_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_payment_transactions(
        status=status,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
        doctor_id=doctor_id,
        patient_id=patient_id,
        page=page,
        limit=limit,
    )


@router.get("/payments/reconciliation", response_model=PaymentReconciliation)
async def get_payment_reconciliation(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_payment_reconciliation(date_from, date_to)


# ============================================================================
# APPOINTMENTS & ACTIVITY
# ============================================================================


@router.get("/appointments", response_model=Page[AppointmentResponse])
async def list_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    type: Optional[AppointmentType] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    doctor_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    sort_by: str = Query("scheduled_date_time", pattern="^(scheduled_date_time|created_at|status)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    return AppointmentService(db).list_appointments(
        current_user,
        status=status,
        appointment_type=type,
        date_from=date_from,
        date_to=date_to,
        doctor_id=doctor_id,
        patient_id=patient_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/activity-log", response_model=Page[ActivityLogResponse])
async def get_activity_log(
    admin_id: Optional[int] = Query(None),
    target_type: Optional[str] = Query(None, max_length=50),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_activity_log(admin_id, target_type, page, limit)
