"""Admin repository - reporting queries across the platform"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import (
    AdminActivityLog,
    AdminProfile,
    Appointment,
    DoctorProfile,
    PatientProfile,
    Payment,
    PaymentStatus,
    User,
    UserRole,
)


class AdminRepository:
    """Repository for admin reporting and user management"""

    @staticmethod
    def count_grouped(db: Session, column, *filters) -> dict[str, int]:
        query = db.query(column, func.count()).group_by(column)
        for condition in filters:
            query = query.filter(condition)
        return {key.value if hasattr(key, "value") else key: count for key, count in query.all()}

    @staticmethod
    def users_query(
        db: Session,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        is_verified: Optional[bool] = None,
        search: Optional[str] = None,
    ):
        query = (
            db.query(User)
            .options(
                joinedload(User.patient_profile),
                joinedload(User.doctor_profile),
                joinedload(User.admin_profile),
            )
            .outerjoin(PatientProfile, PatientProfile.user_id == User.id)
            .outerjoin(DoctorProfile, DoctorProfile.user_id == User.id)
            .outerjoin(AdminProfile, AdminProfile.user_id == User.id)
        )
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        if is_verified is not None:
            query = query.filter(User.is_verified.is_(is_verified))
        if search:
            term = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(User.email).like(term),
                    func.lower(PatientProfile.name).like(term),
                    func.lower(DoctorProfile.name).like(term),
                    func.lower(AdminProfile.name).like(term),
                )
            )
        return query.order_by(User.created_at.desc(), User.id.desc())

    @staticmethod
    def payments_query(
        db: Session,
        status: Optional[PaymentStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
    ):
        query = (
            db.query(Payment)
            .join(Appointment, Payment.appointment_id == Appointment.id)
            .options(
                joinedload(Payment.appointment).joinedload(Appointment.patient),
                joinedload(Payment.appointment).joinedload(Appointment.doctor),
            )
        )
        if status:
            query = query.filter(Payment.status == status)
        if date_from:
            query = query.filter(Payment.created_at >= date_from)
        if date_to:
            query = query.filter(Payment.created_at <= date_to)
        if min_amount is not None:
            query = query.filter(Payment.amount >= min_amount)
        if max_amount is not None:
            query = query.filter(Payment.amount <= max_amount)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        return query.order_by(Payment.created_at.desc(), Payment.id.desc())

    @staticmethod
    def payment_totals(
        db: Session, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> dict[PaymentStatus, tuple[float, int]]:
        query = db.query(Payment.status, func.coalesce(func.sum(Payment.amount), 0.0), func.count(Payment.id))
        if date_from:
            query = query.filter(Payment.created_at >= date_from)
        if date_to:
            query = query.filter(Payment.created_at <= date_to)
        return {status: (float(total), count) for status, total, count in query.group_by(Payment.status).all()}

    @staticmethod
    def activity_query(db: Session, admin_id: Optional[int] = None, target_type: Optional[str] = None):
        query = db.query(AdminActivityLog)
        if admin_id is not None:
            query = query.filter(AdminActivityLog.admin_id == admin_id)
        if target_type:
            query = query.filter(AdminActivityLog.target_type == target_type)
        return query.order_by(AdminActivityLog.created_at.desc(), AdminActivityLog.id.desc())
