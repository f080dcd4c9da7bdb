"""Admin service - platform analytics, user management and payment reporting"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    AppointmentStatus,
    DoctorProfile,
    Payment,
    PaymentStatus,
    Review,
    User,
    UserRole,
)
from ...shared import timeutils
from ...shared.pagination import build_page, normalize_paging, paginate_query
from ..appointments.state_machine import ACTIVE_STATUSES
from .activity import log_admin_activity
from .repository import AdminRepository

logger = logging.getLogger(__name__)

REVENUE_MONTHS = 12


def serialize_user(user: User) -> dict:
    profile = user.profile
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "name": profile.name if profile else None,
        "is_verified": user.is_verified,
        "is_active": user.is_active,
        "created_at": user.created_at,
    }


def serialize_transaction(payment: Payment) -> dict:
    appointment = payment.appointment
    return {
        "id": payment.id,
        "appointment_id": payment.appointment_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "status": payment.status,
        "provider_payment_id": payment.provider_payment_id,
        "processed_at": payment.processed_at,
        "refunded_at": payment.refunded_at,
        "created_at": payment.created_at,
        "patient_id": appointment.patient_id,
        "patient_name": appointment.patient.name,
        "doctor_id": appointment.doctor_id,
        "doctor_name": appointment.doctor.name,
        "appointment_status": appointment.status,
        "scheduled_date_time": appointment.scheduled_date_time,
    }


def month_starts(now: datetime, count: int) -> list[tuple[int, int]]:
    """(year, month) pairs for the last `count` months, oldest first, ending with now's month"""
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


class AdminService:
    """Service layer for admin operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository()

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_system_analytics(self) -> dict:
        now = timeutils.utcnow()
        month_start = timeutils.start_of_month(now)
        return {
            "users": self._user_analytics(month_start),
            "appointments": self._appointment_analytics(now, month_start),
            "payments": self._payment_analytics(now, month_start),
            "ratings": self._rating_analytics(),
            "generated_at": now,
        }

    def _user_analytics(self, month_start: datetime) -> dict:
        by_role = self.repo.count_grouped(self.db, User.role)
        return {
            "total_users": sum(by_role.values()),
            "by_role": {role.value: by_role.get(role.value, 0) for role in UserRole},
            "new_this_month": self.db.query(User).filter(User.created_at >= month_start).count(),
            "active_users": self.db.query(User).filter(User.is_active.is_(True)).count(),
            "pending_doctor_verifications": self.db.query(DoctorProfile)
            .filter(DoctorProfile.license_verified.is_(False))
            .count(),
        }

    def _appointment_analytics(self, now: datetime, month_start: datetime) -> dict:
        by_status = self.repo.count_grouped(self.db, Appointment.status)
        this_month = self.db.query(Appointment).filter(Appointment.created_at >= month_start).count()
        upcoming = (
            self.db.query(Appointment)
            .filter(Appointment.scheduled_date_time > now, Appointment.status.in_(ACTIVE_STATUSES))
            .count()
        )
        days_elapsed = max(1, (now - month_start).days + 1)
        return {
            "total_appointments": sum(by_status.values()),
            "by_status": {status.value: by_status.get(status.value, 0) for status in AppointmentStatus},
            "this_month": this_month,
            "upcoming": upcoming,
            "completed": by_status.get(AppointmentStatus.COMPLETED.value, 0),
            "cancelled": by_status.get(AppointmentStatus.CANCELLED.value, 0),
            "average_per_day_this_month": round(this_month / days_elapsed, 2),
        }

    def _payment_analytics(self, now: datetime, month_start: datetime) -> dict:
        completed = Payment.status == PaymentStatus.COMPLETED
        total_revenue, transaction_count = self.db.query(
            func.coalesce(func.sum(Payment.amount), 0.0), func.count(Payment.id)
        ).filter(completed).one()
        revenue_this_month = (
            self.db.query(func.coalesce(func.sum(Payment.amount), 0.0))
            .filter(completed, Payment.processed_at >= month_start)
            .scalar()
        )

        months = month_starts(now, REVENUE_MONTHS)
        first_year, first_month = months[0]
        window_start = datetime(first_year, first_month, 1)
        buckets = {key: 0.0 for key in months}
        rows = (
            self.db.query(Payment.processed_at, Payment.amount)
            .filter(completed, Payment.processed_at >= window_start)
            .all()
        )
        for processed_at, amount in rows:
            key = (processed_at.year, processed_at.month)
            if key in buckets:
                buckets[key] += amount

        by_status = self.repo.count_grouped(self.db, Payment.status)
        return {
            "total_revenue": round(float(total_revenue), 2),
            "revenue_this_month": round(float(revenue_this_month), 2),
            "average_transaction": round(float(total_revenue) / transaction_count, 2) if transaction_count else 0.0,
            "transaction_count": transaction_count,
            "by_status": {status.value: by_status.get(status.value, 0) for status in PaymentStatus},
            "monthly_revenue": [
                {"year": year, "month": month, "revenue": round(buckets[(year, month)], 2)} for year, month in months
            ],
        }

    def _rating_analytics(self) -> dict:
        average = (
            self.db.query(func.avg(DoctorProfile.rating)).filter(DoctorProfile.total_reviews > 0).scalar()
        )
        counts = dict(self.db.query(Review.rating, func.count(Review.id)).group_by(Review.rating).all())
        return {
            "average_doctor_rating": round(float(average), 2) if average is not None else 0.0,
            "total_reviews": sum(counts.values()),
            "rating_distribution": {star: counts.get(star, 0) for star in range(1, 6)},
        }

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        is_verified: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        page, limit = normalize_paging(page, limit)
        query = self.repo.users_query(self.db, role, is_active, is_verified, search.strip() if search else None)
        items, total = paginate_query(query, page, limit)
        return build_page([serialize_user(u) for u in items], total, page, limit)

    def update_user_status(self, user_id: int, admin: User, is_active: Optional[bool], is_verified: Optional[bool]) -> dict:
        if is_active is None and is_verified is None:
            raise HTTPException(status_code=400, detail="Nothing to update")

        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user.id == admin.id and is_active is False:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

        changes = {}
        if is_active is not None and user.is_active != is_active:
            user.is_active = is_active
            changes["is_active"] = is_active
        if is_verified is not None and user.is_verified != is_verified:
            user.is_verified = is_verified
            changes["is_verified"] = is_verified

        if changes:
            log_admin_activity(self.db, admin.id, "update_user_status", "user", user.id, changes)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"👮 Admin {admin.id} updated user {user.id}: {changes or 'no changes'}")
        return serialize_user(user)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def get_payment_transactions(
        self,
        status: Optional[PaymentStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        if min_amount is not None and max_amount is not None and min_amount > max_amount:
            raise HTTPException(status_code=400, detail="min_amount cannot exceed max_amount")
        page, limit = normalize_paging(page, limit)
        query = self.repo.payments_query(
            self.db,
            status=status,
            date_from=timeutils.to_naive_utc(date_from) if date_from else None,
            date_to=timeutils.to_naive_utc(date_to) if date_to else None,
            min_amount=min_amount,
            max_amount=max_amount,
            doctor_id=doctor_id,
            patient_id=patient_id,
        )
        items, total = paginate_query(query, page, limit)
        return build_page([serialize_transaction(p) for p in items], total, page, limit)

    def get_payment_reconciliation(
        self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> dict:
        date_from = timeutils.to_naive_utc(date_from) if date_from else None
        date_to = timeutils.to_naive_utc(date_to) if date_to else None
        if date_from and date_to and date_from > date_to:
            raise HTTPException(status_code=400, detail="date_from must be before date_to")

        totals = self.repo.payment_totals(self.db, date_from, date_to)
        completed_total, completed_count = totals.get(PaymentStatus.COMPLETED, (0.0, 0))
        refunded_total, refunded_count = totals.get(PaymentStatus.REFUNDED, (0.0, 0))
        failed_total, failed_count = totals.get(PaymentStatus.FAILED, (0.0, 0))
        _, pending_count = totals.get(PaymentStatus.PENDING, (0.0, 0))

        # Refunded payments were collected once, so they count toward gross only
        return {
            "date_from": date_from,
            "date_to": date_to,
            "completed_total": round(completed_total, 2),
            "completed_count": completed_count,
            "refunded_total": round(refunded_total, 2),
            "refunded_count": refunded_count,
            "failed_total": round(failed_total, 2),
            "failed_count": failed_count,
            "pending_count": pending_count,
            "gross_revenue": round(completed_total + refunded_total, 2),
            "net_revenue": round(completed_total, 2),
        }

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def get_activity_log(
        self, admin_id: Optional[int] = None, target_type: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> dict:
        page, limit = normalize_paging(page, limit)
        items, total = paginate_query(self.repo.activity_query(self.db, admin_id, target_type), page, limit)
        return build_page(items, total, page, limit)
