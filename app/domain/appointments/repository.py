"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, AppointmentStatus, AppointmentType, DoctorProfile
from .rules import conflict_window
from .state_machine import ACTIVE_STATUSES

SORT_COLUMNS = {
    "scheduled_date_time": Appointment.scheduled_date_time,
    "created_at": Appointment.created_at,
    "status": Appointment.status,
}


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Optional[DoctorProfile]:
        return db.query(DoctorProfile).filter(DoctorProfile.id == doctor_id).first()

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.patient),
                joinedload(Appointment.doctor),
                joinedload(Appointment.payment),
                joinedload(Appointment.zoom_meeting),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def create_appointment(db: Session, **data) -> Appointment:
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def find_conflicts(
        db: Session, doctor_id: int, scheduled: datetime, exclude_id: Optional[int] = None
    ) -> list[Appointment]:
        """Active appointments for the doctor within the conflict window"""
        start, end = conflict_window(scheduled)
        query = db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.scheduled_date_time >= start,
            Appointment.scheduled_date_time <= end,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.all()

    @staticmethod
    def list_query(
        db: Session,
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
        appointment_type: Optional[AppointmentType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        sort_by: str = "scheduled_date_time",
        sort_order: str = "desc",
    ):
        query = db.query(Appointment).options(
            joinedload(Appointment.patient),
            joinedload(Appointment.doctor),
            joinedload(Appointment.payment),
            joinedload(Appointment.zoom_meeting),
        )
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if status:
            query = query.filter(Appointment.status == status)
        if appointment_type:
            query = query.filter(Appointment.type == appointment_type)
        if date_from:
            query = query.filter(Appointment.scheduled_date_time >= date_from)
        if date_to:
            query = query.filter(Appointment.scheduled_date_time <= date_to)

        column = SORT_COLUMNS.get(sort_by, Appointment.scheduled_date_time)
        order = column.asc() if sort_order == "asc" else column.desc()
        return query.order_by(order, Appointment.id.asc())

    @staticmethod
    def scoped_query(db: Session, patient_id: Optional[int] = None, doctor_id: Optional[int] = None):
        query = db.query(Appointment)
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return query

    @staticmethod
    def count_by(query, column) -> dict[str, int]:
        rows = query.with_entities(column, func.count(Appointment.id)).group_by(column).all()
        return {key.value: count for key, count in rows}
