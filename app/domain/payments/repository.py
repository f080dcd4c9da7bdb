"""Payment repository - Database operations for payments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Payment, PaymentStatus


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
        return (
            db.query(Payment)
            .options(joinedload(Payment.appointment))
            .filter(Payment.id == payment_id)
            .first()
        )

    @staticmethod
    def get_by_appointment(db: Session, appointment_id: int) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.appointment_id == appointment_id).first()

    @staticmethod
    def get_by_provider_id(db: Session, provider_payment_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.provider_payment_id == provider_payment_id).first()

    @staticmethod
    def create_payment(db: Session, **data) -> Payment:
        payment = Payment(**data)
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment

    @staticmethod
    def history_query(db: Session, patient_id: Optional[int] = None, doctor_id: Optional[int] = None):
        query = db.query(Payment).join(Appointment, Payment.appointment_id == Appointment.id)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return query.order_by(Payment.created_at.desc(), Payment.id.desc())

    @staticmethod
    def completed_for_doctor(
        db: Session,
        doctor_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[Payment]:
        query = (
            db.query(Payment)
            .join(Appointment, Payment.appointment_id == Appointment.id)
            .filter(Appointment.doctor_id == doctor_id, Payment.status == PaymentStatus.COMPLETED)
        )
        if start_date:
            query = query.filter(Payment.processed_at >= start_date)
        if end_date:
            query = query.filter(Payment.processed_at <= end_date)
        return query.all()
