"""Appointment service - booking, lifecycle and side effects"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import get_patient_profile_or_403
from ...models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    NotificationType,
    PaymentStatus,
    User,
    UserRole,
)
from ...shared import timeutils
from ...shared.pagination import build_page, normalize_paging, paginate_query
from ..meetings.service import MeetingService
from ..notifications.reminders import ReminderService
from ..notifications.service import NotificationService
from .access import ensure_participant
from .repository import AppointmentRepository
from .rules import PATIENT_CANCEL_NOTICE, BookingValidationError, validate_booking
from .schemas import AppointmentCancel, AppointmentCreate, AppointmentReschedule, AppointmentStatusUpdate
from .state_machine import (
    ACTIVE_STATUSES,
    InvalidTransitionError,
    TransitionNotPermittedError,
    ensure_transition,
)

logger = logging.getLogger(__name__)

# Notification sent for each status reached through update_status
STATUS_NOTIFICATIONS = {
    AppointmentStatus.PAYMENT_PENDING: (NotificationType.APPOINTMENT_ACCEPTED, ("patient",)),
    AppointmentStatus.REJECTED: (NotificationType.APPOINTMENT_REJECTED, ("patient",)),
    AppointmentStatus.COMPLETED: (NotificationType.APPOINTMENT_COMPLETED, ("patient",)),
}


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    def _get_for_user(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        ensure_participant(appointment, user)
        return appointment

    def _check_booking(self, doctor, scheduled: datetime, exclude_id: Optional[int] = None) -> None:
        try:
            validate_booking(doctor, scheduled, timeutils.utcnow())
        except BookingValidationError as e:
            status_code = 404 if e.errors == ["Doctor not found"] else 400
            raise HTTPException(status_code=status_code, detail="; ".join(e.errors)) from e

        if self.repo.find_conflicts(self.db, doctor.id, scheduled, exclude_id):
            raise HTTPException(status_code=409, detail="Doctor already has an appointment around this time")

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def create_appointment(self, user: User, data: AppointmentCreate) -> Appointment:
        patient = get_patient_profile_or_403(user)
        doctor = self.repo.get_doctor(self.db, data.doctor_id)
        self._check_booking(doctor, data.scheduled_date_time)

        appointment = self.repo.create_appointment(
            self.db,
            patient_id=patient.id,
            doctor_id=doctor.id,
            scheduled_date_time=data.scheduled_date_time,
            type=data.type,
            status=AppointmentStatus.AWAITING_ACCEPTANCE,
            payment_status=PaymentStatus.PENDING,
            notes=data.notes,
        )
        logger.info(f"📅 Appointment {appointment.id} booked: patient {patient.id} with doctor {doctor.id}")

        await NotificationService(self.db).notify_appointment(appointment, NotificationType.APPOINTMENT_BOOKED)
        return self.repo.get_appointment(self.db, appointment.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _scope(self, user: User) -> dict:
        if user.role == UserRole.PATIENT:
            return {"patient_id": get_patient_profile_or_403(user).id}
        if user.role == UserRole.DOCTOR:
            if not user.doctor_profile:
                raise HTTPException(status_code=403, detail="Doctor profile required")
            return {"doctor_id": user.doctor_profile.id}
        return {}

    def list_appointments(
        self,
        user: User,
        status: Optional[AppointmentStatus] = None,
        appointment_type: Optional[AppointmentType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        sort_by: str = "scheduled_date_time",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        page, limit = normalize_paging(page, limit)
        filters = {"doctor_id": doctor_id, "patient_id": patient_id}
        # Role scope always wins over query filters
        filters.update(self._scope(user))

        query = self.repo.list_query(
            self.db,
            status=status,
            appointment_type=appointment_type,
            date_from=timeutils.to_naive_utc(date_from) if date_from else None,
            date_to=timeutils.to_naive_utc(date_to) if date_to else None,
            sort_by=sort_by,
            sort_order=sort_order,
            **filters,
        )
        items, total = paginate_query(query, page, limit)
        return build_page(items, total, page, limit)

    def get_appointment(self, appointment_id: int, user: User) -> Appointment:
        return self._get_for_user(appointment_id, user)

    def get_appointment_stats(self, user: User) -> dict:
        query = self.repo.scoped_query(self.db, **self._scope(user))
        by_status = self.repo.count_by(query, Appointment.status)
        by_type = self.repo.count_by(query, Appointment.type)
        upcoming = query.filter(
            Appointment.scheduled_date_time > timeutils.utcnow(),
            Appointment.status.in_([AppointmentStatus.CONFIRMED, AppointmentStatus.PAYMENT_PENDING]),
        ).count()
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_type": by_type,
            "upcoming_count": upcoming,
            "completed_count": by_status.get(AppointmentStatus.COMPLETED.value, 0),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def update_status(self, appointment_id: int, user: User, data: AppointmentStatusUpdate) -> Appointment:
        appointment = self._get_for_user(appointment_id, user)

        if data.status == AppointmentStatus.CANCELLED:
            return await self.cancel_appointment(
                appointment_id, user, AppointmentCancel(reason=data.notes or "Cancelled by user")
            )

        try:
            ensure_transition(appointment.status, data.status, user.role)
        except TransitionNotPermittedError as e:
            raise HTTPException(status_code=403, detail=str(e)) from e
        except InvalidTransitionError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        previous = appointment.status
        appointment.status = data.status
        if data.notes:
            appointment.notes = data.notes
        if data.status == AppointmentStatus.CONFIRMED:
            # Admin override; payment is recorded as settled out of band
            appointment.payment_status = PaymentStatus.COMPLETED
        self.db.commit()
        logger.info(f"🔄 Appointment {appointment.id}: {previous.value} -> {data.status.value} by user {user.id}")

        if data.status == AppointmentStatus.CONFIRMED:
            await self.handle_confirmed(appointment)
        elif data.status in STATUS_NOTIFICATIONS:
            notification_type, recipients = STATUS_NOTIFICATIONS[data.status]
            await NotificationService(self.db).notify_appointment(appointment, notification_type, recipients)

        return self.repo.get_appointment(self.db, appointment.id)

    async def handle_confirmed(self, appointment: Appointment) -> None:
        """Side effects of a confirmed appointment; failures never undo the confirmation"""
        if appointment.type == AppointmentType.ONLINE and not appointment.zoom_meeting:
            try:
                await MeetingService(self.db).create_meeting_for_appointment(appointment)
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Failed to create meeting for appointment {appointment.id}: {e}")

        try:
            ReminderService(self.db).create_appointment_reminders(appointment)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to schedule reminders for appointment {appointment.id}: {e}")

        await NotificationService(self.db).notify_appointment(appointment, NotificationType.PAYMENT_CONFIRMED)

    async def cancel_appointment(self, appointment_id: int, user: User, data: AppointmentCancel) -> Appointment:
        appointment = self._get_for_user(appointment_id, user)

        if appointment.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            raise HTTPException(
                status_code=400, detail=f"Cannot cancel a {appointment.status.value.lower()} appointment"
            )
        try:
            ensure_transition(appointment.status, AppointmentStatus.CANCELLED, user.role)
        except (TransitionNotPermittedError, InvalidTransitionError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if user.role == UserRole.PATIENT:
            if appointment.scheduled_date_time - timeutils.utcnow() < PATIENT_CANCEL_NOTICE:
                raise HTTPException(
                    status_code=400,
                    detail="Appointments can only be cancelled at least 24 hours in advance",
                )

        appointment.status = AppointmentStatus.CANCELLED
        appointment.notes = f"Cancelled: {data.reason}"
        self.db.commit()
        logger.info(f"🚫 Appointment {appointment.id} cancelled by user {user.id}")

        payment = appointment.payment
        if data.request_refund and payment and payment.status == PaymentStatus.COMPLETED:
            from ..payments.service import PaymentService

            try:
                await PaymentService(self.db).refund_payment(payment.id, data.reason)
            except HTTPException as e:
                logger.error(f"❌ Refund failed for appointment {appointment.id}: {e.detail}")

        ReminderService(self.db).cancel_appointment_reminders(appointment.id)
        await MeetingService(self.db).cancel_for_appointment(appointment.id)
        await NotificationService(self.db).notify_appointment(appointment, NotificationType.APPOINTMENT_CANCELLED)

        return self.repo.get_appointment(self.db, appointment.id)

    async def reschedule_appointment(
        self, appointment_id: int, user: User, data: AppointmentReschedule
    ) -> Appointment:
        appointment = self._get_for_user(appointment_id, user)

        if appointment.status not in ACTIVE_STATUSES:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot reschedule a {appointment.status.value.lower()} appointment",
            )
        self._check_booking(appointment.doctor, data.new_date_time, exclude_id=appointment.id)

        previous = appointment.scheduled_date_time
        appointment.scheduled_date_time = data.new_date_time
        if data.reason:
            appointment.notes = f"Rescheduled: {data.reason}"
        self.db.commit()
        logger.info(f"📅 Appointment {appointment.id} moved from {previous} to {data.new_date_time}")

        if appointment.status == AppointmentStatus.CONFIRMED:
            ReminderService(self.db).update_appointment_reminders(appointment)
        try:
            await MeetingService(self.db).reschedule_for_appointment(appointment)
        except Exception as e:
            logger.error(f"❌ Failed to move meeting for appointment {appointment.id}: {e}")

        await NotificationService(self.db).notify_appointment(
            appointment,
            NotificationType.APPOINTMENT_RESCHEDULED,
            extra_data={"previous_date_time": previous.isoformat()},
        )
        return self.repo.get_appointment(self.db, appointment.id)
