"""
Medical document access policy

Every document read, list, update, delete and download goes through
check_document_access.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentStatus, User, UserRole

# Appointment statuses that give a doctor access to the patient's records
DOCTOR_ACCESS_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)


class DocumentAction(str, enum.Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = AccessDecision(True)


def doctor_has_active_appointment(db: Session, doctor_id: int, patient_id: int, appointment_id: int) -> bool:
    return (
        db.query(Appointment.id)
        .filter(
            Appointment.id == appointment_id,
            Appointment.doctor_id == doctor_id,
            Appointment.patient_id == patient_id,
            Appointment.status.in_(DOCTOR_ACCESS_STATUSES),
        )
        .first()
        is not None
    )


def check_document_access(
    db: Session,
    user: User,
    patient_id: int,
    appointment_id: Optional[int] = None,
    action: DocumentAction = DocumentAction.READ,
) -> AccessDecision:
    """
    Decide whether `user` may perform `action` on documents owned by `patient_id`.

    Admins always may. Patients only on their own documents. Doctors may read
    when `appointment_id` names a confirmed or completed appointment of theirs
    with that patient, and may never modify.
    """
    if user.role == UserRole.ADMIN:
        return ALLOW

    if user.role == UserRole.PATIENT:
        if user.patient_profile and user.patient_profile.id == patient_id:
            return ALLOW
        return AccessDecision(False, "Patients can only access their own documents")

    if user.role == UserRole.DOCTOR:
        if action != DocumentAction.READ:
            return AccessDecision(False, "Doctors have read-only access to medical documents")
        if appointment_id is None:
            return AccessDecision(False, "Appointment ID required for doctor access")
        if user.doctor_profile and doctor_has_active_appointment(
            db, user.doctor_profile.id, patient_id, appointment_id
        ):
            return ALLOW
        return AccessDecision(False, "No active appointment found with this patient")

    return AccessDecision(False, "Access denied")
