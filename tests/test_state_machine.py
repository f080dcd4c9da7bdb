"""Appointment lifecycle table and booking rule tests"""

from datetime import datetime

import pytest

from app.domain.appointments.rules import (
    BookingValidationError,
    conflict_window,
    doctor_errors,
    timing_errors,
    validate_booking,
)
from app.domain.appointments.state_machine import (
    TERMINAL_STATUSES,
    InvalidTransitionError,
    TransitionNotPermittedError,
    allowed_targets,
    can_transition,
    ensure_transition,
)
from app.models import AppointmentStatus, DoctorProfile, UserRole

S = AppointmentStatus
NOW = datetime(2026, 10, 19, 10, 0)  # Monday


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (S.AWAITING_ACCEPTANCE, S.PAYMENT_PENDING),
            (S.AWAITING_ACCEPTANCE, S.REJECTED),
            (S.AWAITING_ACCEPTANCE, S.CANCELLED),
            (S.PAYMENT_PENDING, S.CONFIRMED),
            (S.PAYMENT_PENDING, S.CANCELLED),
            (S.CONFIRMED, S.COMPLETED),
            (S.CONFIRMED, S.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.AWAITING_ACCEPTANCE, S.CONFIRMED),
            (S.AWAITING_ACCEPTANCE, S.COMPLETED),
            (S.PAYMENT_PENDING, S.COMPLETED),
            (S.CONFIRMED, S.PAYMENT_PENDING),
            (S.COMPLETED, S.CANCELLED),
            (S.CANCELLED, S.CONFIRMED),
        ],
    )
    def test_disallowed(self, current, target):
        assert not can_transition(current, target)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {S.REJECTED, S.COMPLETED, S.CANCELLED}

    def test_plain_strings_are_accepted(self):
        assert can_transition("AWAITING_ACCEPTANCE", "PAYMENT_PENDING") is can_transition(
            S.AWAITING_ACCEPTANCE, S.PAYMENT_PENDING
        )


class TestRolePermissions:
    def test_patient_may_only_cancel(self):
        ensure_transition(S.CONFIRMED, S.CANCELLED, UserRole.PATIENT)
        with pytest.raises(TransitionNotPermittedError):
            ensure_transition(S.CONFIRMED, S.COMPLETED, UserRole.PATIENT)

    def test_doctor_cannot_confirm(self):
        with pytest.raises(TransitionNotPermittedError):
            ensure_transition(S.PAYMENT_PENDING, S.CONFIRMED, UserRole.DOCTOR)

    def test_admin_still_bound_by_lifecycle(self):
        with pytest.raises(InvalidTransitionError):
            ensure_transition(S.AWAITING_ACCEPTANCE, S.COMPLETED, UserRole.ADMIN)

    def test_system_actor_checks_lifecycle_only(self):
        ensure_transition(S.PAYMENT_PENDING, S.CONFIRMED)
        with pytest.raises(InvalidTransitionError):
            ensure_transition(S.CANCELLED, S.CONFIRMED)

    def test_allowed_targets_for_doctor(self):
        assert allowed_targets(S.AWAITING_ACCEPTANCE, UserRole.DOCTOR) == [
            S.CANCELLED,
            S.PAYMENT_PENDING,
            S.REJECTED,
        ]
        assert allowed_targets(S.COMPLETED, UserRole.ADMIN) == []


def _doctor(**overrides):
    fields = {"is_accepting_patients": True, "license_verified": True}
    fields.update(overrides)
    return DoctorProfile(**fields)


class TestBookingRules:
    def test_valid_slot(self):
        validate_booking(_doctor(), datetime(2026, 10, 20, 14, 0), NOW)

    def test_missing_doctor(self):
        assert doctor_errors(None) == ["Doctor not found"]

    def test_unverified_and_not_accepting(self):
        errors = doctor_errors(_doctor(is_accepting_patients=False, license_verified=False))
        assert len(errors) == 2

    def test_less_than_24_hours(self):
        errors = timing_errors(datetime(2026, 10, 20, 9, 0), NOW)
        assert errors == ["Appointments must be booked at least 24 hours in advance"]

    def test_more_than_48_hours(self):
        errors = timing_errors(datetime(2026, 10, 21, 11, 0), NOW)
        assert errors == ["Appointments cannot be booked more than 48 hours in advance"]

    def test_outside_business_hours(self):
        errors = timing_errors(datetime(2026, 10, 20, 18, 0), NOW)
        assert "Appointments can only be scheduled between 9 AM and 6 PM" in errors

    def test_weekend(self):
        friday = datetime(2026, 10, 23, 10, 0)
        errors = timing_errors(datetime(2026, 10, 24, 12, 0), friday)
        assert errors == ["Appointments can only be scheduled on weekdays (Monday-Friday)"]

    def test_past_time_collects_every_error(self):
        with pytest.raises(BookingValidationError) as exc:
            validate_booking(_doctor(), datetime(2026, 10, 18, 8, 0), NOW)
        assert "Appointment time cannot be in the past" in exc.value.errors
        assert len(exc.value.errors) >= 3

    def test_conflict_window_is_thirty_minutes_each_side(self):
        start, end = conflict_window(datetime(2026, 10, 20, 14, 0))
        assert start == datetime(2026, 10, 20, 13, 30)
        assert end == datetime(2026, 10, 20, 14, 30)
