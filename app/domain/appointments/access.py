"""Participant checks shared by appointment, meeting, payment and review flows"""

from fastapi import HTTPException

from ...models import Appointment, User, UserRole


def is_participant(appointment: Appointment, user: User) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.PATIENT:
        return bool(user.patient_profile) and appointment.patient_id == user.patient_profile.id
    if user.role == UserRole.DOCTOR:
        return bool(user.doctor_profile) and appointment.doctor_id == user.doctor_profile.id
    return False


def ensure_participant(appointment: Appointment, user: User) -> None:
    """403 unless the user is the appointment's patient, its doctor or an admin"""
    if not is_participant(appointment, user):
        raise HTTPException(status_code=403, detail="You do not have access to this appointment")
