"""Appointment booking and lifecycle endpoint tests"""

from datetime import timedelta

import pytest
from factories import BOOKABLE, NOW, auth_headers, make_appointment, make_doctor, make_patient, make_payment

from app.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Notification,
    NotificationType,
    PaymentStatus,
    ScheduledJob,
)


@pytest.fixture(autouse=True)
def _clock(frozen_now):
    return frozen_now


def _book(client, patient, doctor, when=BOOKABLE, type="IN_PERSON"):
    return client.post(
        "/appointments",
        json={
            "doctor_id": doctor.doctor_profile.id,
            "scheduled_date_time": when.isoformat() + "Z",
            "type": type,
            "notes": "Recurring headaches",
        },
        headers=auth_headers(patient),
    )


class TestBooking:
    def test_patient_books_appointment(self, client, db, patient, doctor):
        response = _book(client, patient, doctor)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "AWAITING_ACCEPTANCE"
        assert body["payment_status"] == "PENDING"
        assert body["doctor"]["name"] == "Alex Smith"

        types = {n.type for n in db.query(Notification).all()}
        assert types == {NotificationType.APPOINTMENT_BOOKED}

    def test_doctor_cannot_book(self, client, doctor):
        response = _book(client, doctor, doctor)
        assert response.status_code == 403

    def test_unknown_doctor_is_404(self, client, patient):
        response = client.post(
            "/appointments",
            json={"doctor_id": 999, "scheduled_date_time": BOOKABLE.isoformat(), "type": "ONLINE"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 404

    def test_unverified_doctor_rejected(self, client, db, patient):
        unverified = make_doctor(db, verified=False)
        response = _book(client, patient, unverified)
        assert response.status_code == 400
        assert "not verified" in response.json()["detail"]

    def test_too_soon_rejected(self, client, patient, doctor):
        response = _book(client, patient, doctor, when=NOW + timedelta(hours=5))
        assert response.status_code == 400

    def test_conflict_within_thirty_minutes(self, client, db, patient, doctor):
        other = make_patient(db, name="Other Patient")
        make_appointment(db, other, doctor, scheduled=BOOKABLE + timedelta(minutes=20))

        response = _book(client, patient, doctor)
        assert response.status_code == 409

    def test_cancelled_appointment_does_not_conflict(self, client, db, patient, doctor):
        other = make_patient(db, name="Other Patient")
        make_appointment(db, other, doctor, scheduled=BOOKABLE, status=AppointmentStatus.CANCELLED)

        assert _book(client, patient, doctor).status_code == 201

    def test_timezone_offset_is_normalized(self, client, patient, doctor):
        local = "2026-10-20T16:00:00+02:00"
        response = client.post(
            "/appointments",
            json={"doctor_id": doctor.doctor_profile.id, "scheduled_date_time": local, "type": "IN_PERSON"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 201
        assert response.json()["scheduled_date_time"].startswith("2026-10-20T14:00:00")


class TestQueries:
    def test_list_is_scoped_by_role(self, client, db, patient, doctor, admin):
        other_patient = make_patient(db, name="Other Patient")
        make_appointment(db, patient, doctor)
        make_appointment(db, other_patient, doctor, scheduled=BOOKABLE + timedelta(hours=2))

        mine = client.get("/appointments", headers=auth_headers(patient)).json()
        assert mine["pagination"]["total"] == 1

        # Query filters cannot widen a patient's scope
        spoofed = client.get(
            f"/appointments?patient_id={other_patient.patient_profile.id}", headers=auth_headers(patient)
        ).json()
        assert spoofed["pagination"]["total"] == 1
        assert spoofed["data"][0]["patient_id"] == patient.patient_profile.id

        assert client.get("/appointments", headers=auth_headers(doctor)).json()["pagination"]["total"] == 2
        assert client.get("/appointments", headers=auth_headers(admin)).json()["pagination"]["total"] == 2

    def test_non_participant_gets_403(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        stranger = make_patient(db, name="Stranger")
        response = client.get(f"/appointments/{appointment.id}", headers=auth_headers(stranger))
        assert response.status_code == 403

    def test_stats(self, client, db, patient, doctor):
        make_appointment(db, patient, doctor, status=AppointmentStatus.PAYMENT_PENDING)
        make_appointment(db, patient, doctor, scheduled=NOW - timedelta(days=3), status=AppointmentStatus.COMPLETED)

        stats = client.get("/appointments/stats", headers=auth_headers(patient)).json()
        assert stats["total"] == 2
        assert stats["upcoming_count"] == 1
        assert stats["completed_count"] == 1
        assert stats["by_type"] == {"IN_PERSON": 2}

    def test_transitions_hint(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        response = client.get(f"/appointments/{appointment.id}/transitions", headers=auth_headers(doctor))
        assert response.json() == ["CANCELLED", "PAYMENT_PENDING", "REJECTED"]


class TestLifecycle:
    def test_doctor_accepts(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)

        response = client.patch(
            f"/appointments/{appointment.id}/status",
            json={"status": "PAYMENT_PENDING"},
            headers=auth_headers(doctor),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "PAYMENT_PENDING"
        accepted = db.query(Notification).filter(Notification.type == NotificationType.APPOINTMENT_ACCEPTED).all()
        assert [n.user_id for n in accepted] == [patient.id]

    def test_patient_cannot_accept(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        response = client.patch(
            f"/appointments/{appointment.id}/status",
            json={"status": "PAYMENT_PENDING"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 403

    def test_invalid_transition_is_400(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        response = client.patch(
            f"/appointments/{appointment.id}/status",
            json={"status": "COMPLETED"},
            headers=auth_headers(doctor),
        )
        assert response.status_code == 400

    def test_admin_confirm_creates_reminders(self, client, db, patient, doctor, admin):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.PAYMENT_PENDING)

        response = client.patch(
            f"/appointments/{appointment.id}/status",
            json={"status": "CONFIRMED"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["payment_status"] == "COMPLETED"
        jobs = db.query(ScheduledJob).filter(ScheduledJob.entity_id == appointment.id).all()
        assert sorted(j.payload["reminder_type"] for j in jobs) == ["one_hour", "ten_minutes"]

    def test_online_confirm_survives_missing_video_provider(self, client, db, patient, doctor, admin):
        appointment = make_appointment(
            db, patient, doctor, status=AppointmentStatus.PAYMENT_PENDING, type=AppointmentType.ONLINE
        )
        response = client.patch(
            f"/appointments/{appointment.id}/status",
            json={"status": "CONFIRMED"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"
        assert response.json()["zoom_meeting"] is None


class TestCancellation:
    def test_patient_cancels_with_notice(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)

        response = client.post(
            f"/appointments/{appointment.id}/cancel",
            json={"reason": "Feeling better"},
            headers=auth_headers(patient),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["notes"] == "Cancelled: Feeling better"

    def test_patient_needs_24_hours_notice(self, client, db, patient, doctor, monkeypatch):
        appointment = make_appointment(db, patient, doctor)
        monkeypatch.setattr("app.shared.timeutils.utcnow", lambda: BOOKABLE - timedelta(hours=23))

        response = client.post(
            f"/appointments/{appointment.id}/cancel",
            json={"reason": "Conflict"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 400

    def test_doctor_may_cancel_late(self, client, db, patient, doctor, monkeypatch):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)
        monkeypatch.setattr("app.shared.timeutils.utcnow", lambda: BOOKABLE - timedelta(hours=2))

        response = client.post(
            f"/appointments/{appointment.id}/cancel",
            json={"reason": "Emergency surgery"},
            headers=auth_headers(doctor),
        )
        assert response.status_code == 200

    def test_cannot_cancel_completed(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.COMPLETED)
        response = client.post(
            f"/appointments/{appointment.id}/cancel",
            json={"reason": "Too late"},
            headers=auth_headers(doctor),
        )
        assert response.status_code == 400

    def test_cancel_removes_pending_reminders(self, client, db, patient, doctor, admin):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.PAYMENT_PENDING)
        client.patch(
            f"/appointments/{appointment.id}/status", json={"status": "CONFIRMED"}, headers=auth_headers(admin)
        )

        client.post(
            f"/appointments/{appointment.id}/cancel", json={"reason": "Travel"}, headers=auth_headers(patient)
        )

        db.expire_all()
        statuses = {j.status for j in db.query(ScheduledJob).filter(ScheduledJob.entity_id == appointment.id)}
        assert statuses == {"cancelled"}

    def test_refund_requested_without_provider_keeps_cancellation(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)
        make_payment(db, appointment, status=PaymentStatus.COMPLETED, provider_payment_id="pay_123")

        response = client.post(
            f"/appointments/{appointment.id}/cancel",
            json={"reason": "Travel", "request_refund": True},
            headers=auth_headers(patient),
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Appointment, appointment.id).status == AppointmentStatus.CANCELLED


class TestReschedule:
    def test_reschedule_moves_time(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        new_time = BOOKABLE + timedelta(hours=2)

        response = client.post(
            f"/appointments/{appointment.id}/reschedule",
            json={"new_date_time": new_time.isoformat(), "reason": "Clinic closed"},
            headers=auth_headers(patient),
        )

        assert response.status_code == 200
        assert response.json()["scheduled_date_time"].startswith("2026-10-20T16:00:00")
        rescheduled = db.query(Notification).filter(Notification.type == NotificationType.APPOINTMENT_RESCHEDULED)
        assert all(n.data["previous_date_time"] == BOOKABLE.isoformat() for n in rescheduled)

    def test_reschedule_within_own_window_is_not_a_conflict(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        response = client.post(
            f"/appointments/{appointment.id}/reschedule",
            json={"new_date_time": (BOOKABLE + timedelta(minutes=15)).isoformat()},
            headers=auth_headers(patient),
        )
        assert response.status_code == 200

    def test_cannot_reschedule_cancelled(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CANCELLED)
        response = client.post(
            f"/appointments/{appointment.id}/reschedule",
            json={"new_date_time": BOOKABLE.isoformat()},
            headers=auth_headers(patient),
        )
        assert response.status_code == 400
