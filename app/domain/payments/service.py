"""Payment service - consultation fee checkout, confirmation and refunds"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL
from ...models import (
    Appointment,
    AppointmentStatus,
    NotificationType,
    Payment,
    PaymentStatus,
    User,
    UserRole,
)
from ...shared import timeutils
from ...shared.pagination import build_page, normalize_paging, paginate_query
from ..appointments.access import ensure_participant
from ..appointments.repository import AppointmentRepository
from ..appointments.service import AppointmentService
from ..appointments.state_machine import can_transition
from ..notifications.service import NotificationService
from .dodo_service import DodoPaymentsError, dodo_service, field
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

# Checkout must finish this long before the consultation starts
PAYMENT_CUTOFF = timedelta(minutes=15)

PROVIDER_SUCCESS_STATUSES = {"succeeded", "completed", "paid"}
PROVIDER_FAILED_STATUSES = {"failed", "cancelled", "canceled"}


class PaymentService:
    """Service layer for payment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()

    def _get_payment(self, payment_id: int) -> Payment:
        payment = self.repo.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment

    @staticmethod
    def _ensure_patient_owner(appointment: Appointment, user: User) -> None:
        if user.role == UserRole.ADMIN:
            return
        profile = user.patient_profile
        if user.role != UserRole.PATIENT or not profile or appointment.patient_id != profile.id:
            raise HTTPException(status_code=403, detail="Only the patient can pay for this appointment")

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_payment(self, appointment_id: int, user: User) -> dict:
        """Start (or resume) the checkout for an accepted appointment"""
        appointment = AppointmentRepository.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        self._ensure_patient_owner(appointment, user)

        if appointment.status != AppointmentStatus.PAYMENT_PENDING:
            raise HTTPException(
                status_code=400, detail="Appointment must be accepted by the doctor before payment"
            )
        if timeutils.utcnow() + PAYMENT_CUTOFF > appointment.scheduled_date_time:
            raise HTTPException(
                status_code=400,
                detail="Payment must be completed at least 15 minutes before the appointment",
            )

        payment = self.repo.get_by_appointment(self.db, appointment.id)
        if payment and payment.status == PaymentStatus.COMPLETED:
            raise HTTPException(status_code=400, detail="Appointment is already paid")
        if payment and payment.status == PaymentStatus.PENDING and payment.checkout_url:
            logger.info(f"♻️ Reusing pending checkout for appointment {appointment.id}")
            return self._checkout_response(payment)

        if not dodo_service.is_available():
            raise HTTPException(status_code=503, detail="Payment service is not configured")

        amount = appointment.doctor.consultation_fee
        try:
            session = await dodo_service.create_checkout_session(
                amount=amount,
                customer_email=appointment.patient.user.email,
                customer_name=appointment.patient.name,
                return_url=f"{FRONTEND_URL}/appointments/{appointment.id}/payment-complete",
                metadata={
                    "appointment_id": appointment.id,
                    "patient_id": appointment.patient_id,
                    "doctor_id": appointment.doctor_id,
                },
            )
        except DodoPaymentsError as e:
            raise HTTPException(status_code=502, detail="Failed to create checkout session") from e

        checkout_url = field(session, "checkout_url")
        session_id = field(session, "session_id")

        if payment:
            payment.amount = amount
            payment.status = PaymentStatus.PENDING
            payment.checkout_url = checkout_url
            payment.checkout_session_id = session_id
            payment.provider_payment_id = None
            self.db.commit()
            self.db.refresh(payment)
        else:
            payment = self.repo.create_payment(
                self.db,
                appointment_id=appointment.id,
                amount=amount,
                currency="USD",
                status=PaymentStatus.PENDING,
                checkout_url=checkout_url,
                checkout_session_id=session_id,
            )

        logger.info(f"💳 Checkout created for appointment {appointment.id}: ${amount:.2f}")
        return self._checkout_response(payment)

    @staticmethod
    def _checkout_response(payment: Payment) -> dict:
        return {
            "id": payment.id,
            "appointment_id": payment.appointment_id,
            "checkout_url": payment.checkout_url,
            "amount": payment.amount,
            "currency": payment.currency,
            "status": payment.status,
        }

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def process_payment(self, payment_id: int, user: User) -> dict:
        """Check the provider for the payment result and apply it"""
        payment = self._get_payment(payment_id)
        ensure_participant(payment.appointment, user)

        if payment.status == PaymentStatus.COMPLETED:
            return {"success": True, "status": payment.status, "message": "Payment already completed", "payment": payment}
        if not payment.provider_payment_id:
            return {
                "success": False,
                "status": payment.status,
                "message": "Payment has not been received yet",
                "payment": payment,
            }

        try:
            provider_payment = await dodo_service.get_payment(payment.provider_payment_id)
        except DodoPaymentsError as e:
            raise HTTPException(status_code=502, detail="Failed to retrieve payment status") from e

        provider_status = str(field(provider_payment, "status", "")).lower()
        if provider_status in PROVIDER_SUCCESS_STATUSES:
            await self.complete_payment(payment)
            return {"success": True, "status": payment.status, "message": "Payment completed", "payment": payment}

        if provider_status in PROVIDER_FAILED_STATUSES:
            self.mark_failed(payment)
        return {
            "success": False,
            "status": payment.status,
            "message": f"Payment status: {provider_status or 'unknown'}",
            "payment": payment,
        }

    async def complete_payment(self, payment: Payment, provider_payment_id: Optional[str] = None) -> Payment:
        """Mark the payment completed and confirm its appointment"""
        if payment.status == PaymentStatus.COMPLETED:
            return payment

        payment.status = PaymentStatus.COMPLETED
        payment.processed_at = timeutils.utcnow()
        if provider_payment_id:
            payment.provider_payment_id = provider_payment_id

        appointment = payment.appointment
        appointment.payment_status = PaymentStatus.COMPLETED
        confirmed = can_transition(appointment.status, AppointmentStatus.CONFIRMED)
        if confirmed:
            appointment.status = AppointmentStatus.CONFIRMED
        else:
            logger.warning(
                f"⚠️ Payment {payment.id} completed but appointment {appointment.id} is "
                f"{appointment.status.value}; it needs a manual refund"
            )
        self.db.commit()
        logger.info(f"✅ Payment {payment.id} completed for appointment {appointment.id}")

        if confirmed:
            await AppointmentService(self.db).handle_confirmed(appointment)
        return payment

    def mark_failed(self, payment: Payment) -> Payment:
        if payment.status != PaymentStatus.PENDING:
            return payment
        payment.status = PaymentStatus.FAILED
        payment.appointment.payment_status = PaymentStatus.FAILED
        self.db.commit()
        logger.warning(f"❌ Payment {payment.id} failed")
        return payment

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    async def refund_payment(self, payment_id: int, reason: str) -> Payment:
        """Refund a completed payment through the provider"""
        payment = self._get_payment(payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise HTTPException(status_code=400, detail="Only completed payments can be refunded")
        if not payment.provider_payment_id:
            raise HTTPException(status_code=400, detail="Payment has no provider reference to refund")

        try:
            await dodo_service.create_refund(payment.provider_payment_id, reason)
        except DodoPaymentsError as e:
            raise HTTPException(status_code=502, detail="Failed to process refund") from e

        self.mark_refunded(payment, reason)
        await NotificationService(self.db).notify_appointment(
            payment.appointment, NotificationType.PAYMENT_REFUNDED, recipients=("patient",)
        )
        return payment

    def mark_refunded(self, payment: Payment, reason: Optional[str] = None) -> Payment:
        if payment.status == PaymentStatus.REFUNDED:
            return payment
        payment.status = PaymentStatus.REFUNDED
        payment.refunded_at = timeutils.utcnow()
        payment.refund_reason = reason or payment.refund_reason
        payment.appointment.payment_status = PaymentStatus.REFUNDED
        self.db.commit()
        logger.info(f"💸 Payment {payment.id} refunded")
        return payment

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def _find_webhook_payment(self, data: dict) -> Optional[Payment]:
        provider_id = data.get("payment_id")
        if provider_id:
            payment = self.repo.get_by_provider_id(self.db, provider_id)
            if payment:
                return payment
        appointment_id = (data.get("metadata") or {}).get("appointment_id")
        if appointment_id:
            try:
                return self.repo.get_by_appointment(self.db, int(appointment_id))
            except (TypeError, ValueError):
                logger.warning(f"⚠️ Invalid appointment_id in webhook metadata: {appointment_id}")
        return None

    async def handle_webhook_event(self, event_type: str, data: dict) -> str:
        """Apply a verified provider event; returns what was done"""
        if event_type not in ("payment.succeeded", "payment.failed", "refund.succeeded"):
            logger.info(f"ℹ️ Ignoring payment webhook event {event_type}")
            return "ignored"

        payment = self._find_webhook_payment(data)
        if not payment:
            logger.warning(f"⚠️ No payment found for webhook {event_type}: {data.get('payment_id')}")
            return "payment_not_found"

        if event_type == "payment.succeeded":
            await self.complete_payment(payment, provider_payment_id=data.get("payment_id"))
            return "completed"
        if event_type == "payment.failed":
            if data.get("payment_id") and not payment.provider_payment_id:
                payment.provider_payment_id = data["payment_id"]
            self.mark_failed(payment)
            return "failed"

        self.mark_refunded(payment, data.get("reason"))
        return "refunded"

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: int, user: User) -> Payment:
        payment = self._get_payment(payment_id)
        ensure_participant(payment.appointment, user)
        return payment

    def get_payment_history(self, user: User, page: int = 1, limit: int = 10) -> dict:
        page, limit = normalize_paging(page, limit)
        if user.role == UserRole.PATIENT:
            query = self.repo.history_query(self.db, patient_id=user.patient_profile.id)
        elif user.role == UserRole.DOCTOR:
            query = self.repo.history_query(self.db, doctor_id=user.doctor_profile.id)
        else:
            query = self.repo.history_query(self.db)
        items, total = paginate_query(query, page, limit)
        return build_page(items, total, page, limit)

    def get_doctor_earnings(
        self, user: User, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None
    ) -> dict:
        payments = self.repo.completed_for_doctor(self.db, user.doctor_profile.id, start_date, end_date)

        monthly: dict[tuple[int, int], dict] = defaultdict(lambda: {"earnings": 0.0, "appointments": 0})
        for payment in payments:
            when = payment.processed_at or payment.created_at
            bucket = monthly[(when.year, when.month)]
            bucket["earnings"] += payment.amount
            bucket["appointments"] += 1

        return {
            "total_earnings": round(sum(p.amount for p in payments), 2),
            "total_appointments": len(payments),
            "monthly_breakdown": [
                {
                    "year": year,
                    "month": month,
                    "earnings": round(values["earnings"], 2),
                    "appointments": values["appointments"],
                }
                for (year, month), values in sorted(monthly.items())
            ],
        }
