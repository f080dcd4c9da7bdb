"""Booking rules for new and rescheduled appointments (all times UTC)"""

from datetime import datetime, timedelta
from typing import Optional

from ...models import DoctorProfile

MIN_LEAD_HOURS = 24
MAX_LEAD_HOURS = 48
OPENING_HOUR = 9
CLOSING_HOUR = 18  # exclusive
CONFLICT_WINDOW = timedelta(minutes=30)
PATIENT_CANCEL_NOTICE = timedelta(hours=24)


class BookingValidationError(Exception):
    """One or more booking rules failed"""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def doctor_errors(doctor: Optional[DoctorProfile]) -> list[str]:
    if doctor is None:
        return ["Doctor not found"]
    errors = []
    if not doctor.is_accepting_patients:
        errors.append("Doctor is not currently accepting new patients")
    if not doctor.license_verified:
        errors.append("Doctor license is not verified")
    return errors


def timing_errors(scheduled: datetime, now: datetime) -> list[str]:
    """Lead-time, business-hours and weekday checks"""
    errors = []
    hours_until = (scheduled - now).total_seconds() / 3600

    if hours_until < MIN_LEAD_HOURS:
        errors.append(f"Appointments must be booked at least {MIN_LEAD_HOURS} hours in advance")
    if hours_until > MAX_LEAD_HOURS:
        errors.append(f"Appointments cannot be booked more than {MAX_LEAD_HOURS} hours in advance")
    if scheduled <= now:
        errors.append("Appointment time cannot be in the past")
    if not OPENING_HOUR <= scheduled.hour < CLOSING_HOUR:
        errors.append("Appointments can only be scheduled between 9 AM and 6 PM")
    if scheduled.weekday() >= 5:
        errors.append("Appointments can only be scheduled on weekdays (Monday-Friday)")
    return errors


def validate_booking(doctor: Optional[DoctorProfile], scheduled: datetime, now: datetime) -> None:
    """Raise BookingValidationError listing every failed rule"""
    errors = doctor_errors(doctor) + timing_errors(scheduled, now)
    if errors:
        raise BookingValidationError(errors)


def conflict_window(scheduled: datetime) -> tuple[datetime, datetime]:
    return scheduled - CONFLICT_WINDOW, scheduled + CONFLICT_WINDOW
