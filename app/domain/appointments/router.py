"""Appointment router - FastAPI endpoints for booking and lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import AppointmentStatus, AppointmentType, User, UserRole
from ...rate_limiter import create_rate_limiter
from ...shared.pagination import Page
from .schemas import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatusUpdate,
)
from .service import AppointmentService
from .state_machine import allowed_targets

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

rate_limit_booking = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="appointment_booking")


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


# ============================================================================
# BOOKING
# ============================================================================


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    service: AppointmentService = Depends(get_appointment_service),
    _: None = Depends(rate_limit_booking),
):
    """Request an appointment; the doctor accepts or rejects it"""
    return await service.create_appointment(current_user, data)


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=Page[AppointmentResponse])
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
    limit: int = Query(10, ge=1),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_appointments(
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


@router.get("/stats", response_model=AppointmentStats)
async def get_appointment_stats(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment_stats(current_user)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.get("/{appointment_id}/transitions", response_model=list[AppointmentStatus])
async def get_allowed_transitions(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Statuses the current user may move this appointment to"""
    appointment = service.get_appointment(appointment_id, current_user)
    return allowed_targets(appointment.status, current_user.role)


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.update_status(appointment_id, current_user, data)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: AppointmentCancel,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.cancel_appointment(appointment_id, current_user, data)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.reschedule_appointment(appointment_id, current_user, data)
