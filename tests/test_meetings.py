"""Video consultation and Zoom webhook tests"""

import hashlib
import hmac
import json
import time
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import NOW, auth_headers, make_admin, make_appointment
from sqlalchemy import text

from app.domain.meetings.service import MeetingService, meeting_topic
from app.models import AppointmentStatus, AppointmentType, MeetingStatus, Notification, NotificationType, ZoomMeeting
from app.webhook_security import compute_zoom_signature

ZOOM_SECRET = "zoom-webhook-secret"


@pytest.fixture(autouse=True)
def _clock(frozen_now):
    return frozen_now


@pytest.fixture
def online(db, patient, doctor):
    return make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED, type=AppointmentType.ONLINE)


@pytest.fixture
def zoom(monkeypatch):
    fake = MagicMock()
    fake.is_available.return_value = True
    fake.create_meeting = AsyncMock(
        return_value={
            "id": 81234567890,
            "topic": "Medical Consultation",
            "duration": 30,
            "start_url": "https://zoom.us/s/81234567890?zak=host-token",
            "join_url": "https://zoom.us/j/81234567890",
            "password": "abc123",
        }
    )
    fake.update_meeting = AsyncMock(return_value=None)
    fake.delete_meeting = AsyncMock(return_value=None)
    monkeypatch.setattr("app.domain.meetings.service.zoom_service", fake)
    return fake


def _meeting(db, appointment, zoom_id="999", status=MeetingStatus.SCHEDULED) -> ZoomMeeting:
    meeting = ZoomMeeting(
        appointment_id=appointment.id,
        zoom_meeting_id=zoom_id,
        topic=meeting_topic(appointment),
        start_time=appointment.scheduled_date_time,
        duration=30,
        host_url="https://zoom.us/s/999?zak=secret",
        join_url="https://zoom.us/j/999",
        password="pw",
        status=status,
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    return meeting


class TestCreateMeeting:
    def test_doctor_creates_meeting_and_links_are_sent(self, client, db, doctor, online, zoom):
        response = client.post(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor))

        assert response.status_code == 201
        body = response.json()
        assert body["zoom_meeting_id"] == "81234567890"
        assert body["host_url"].endswith("zak=host-token")
        assert zoom.create_meeting.await_args.kwargs["duration"] == 30

        ready = db.query(Notification).filter(Notification.type == NotificationType.MEETING_LINK_READY).all()
        assert len(ready) == 2
        assert all(n.data["join_url"] == "https://zoom.us/j/81234567890" for n in ready)

    def test_existing_meeting_is_returned(self, client, db, doctor, online, zoom):
        _meeting(db, online)
        response = client.post(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor))
        assert response.json()["zoom_meeting_id"] == "999"
        zoom.create_meeting.assert_not_awaited()

    def test_cancelled_meeting_is_replaced(self, client, db, doctor, online, zoom):
        _meeting(db, online, status=MeetingStatus.CANCELLED)
        response = client.post(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor))
        assert response.json()["status"] == "SCHEDULED"
        assert db.query(ZoomMeeting).count() == 1

    def test_patient_cannot_create(self, client, patient, online, zoom):
        response = client.post(f"/meetings/appointments/{online.id}", headers=auth_headers(patient))
        assert response.status_code == 403

    def test_in_person_appointment_rejected(self, client, db, patient, doctor, zoom):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)
        response = client.post(f"/meetings/appointments/{appointment.id}", headers=auth_headers(doctor))
        assert response.status_code == 400

    def test_unconfirmed_appointment_rejected(self, client, db, patient, doctor, zoom):
        appointment = make_appointment(db, patient, doctor, type=AppointmentType.ONLINE)
        response = client.post(f"/meetings/appointments/{appointment.id}", headers=auth_headers(doctor))
        assert response.status_code == 400

    def test_zoom_not_configured(self, client, doctor, online):
        response = client.post(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor))
        assert response.status_code == 503


class TestMeetingAccess:
    def test_host_link_hidden_from_patient(self, client, db, patient, doctor, online):
        _meeting(db, online)

        as_patient = client.get(f"/meetings/appointments/{online.id}", headers=auth_headers(patient)).json()
        as_doctor = client.get(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor)).json()

        assert as_patient["host_url"] is None
        assert as_patient["join_url"] == "https://zoom.us/j/999"
        assert as_doctor["host_url"] == "https://zoom.us/s/999?zak=secret"

    def test_host_url_is_encrypted_at_rest(self, db, online):
        _meeting(db, online)
        stored = db.execute(text("SELECT host_url FROM zoom_meetings")).scalar()
        assert "zak=secret" not in stored

    def test_missing_meeting_is_404(self, client, doctor, online):
        response = client.get(f"/meetings/appointments/{online.id}", headers=auth_headers(doctor))
        assert response.status_code == 404

    def test_patient_cannot_start(self, client, db, patient, online):
        meeting = _meeting(db, online)
        response = client.post(f"/meetings/{meeting.id}/start", headers=auth_headers(patient))
        assert response.status_code == 403

    def test_doctor_starts_and_ends(self, client, db, doctor, online):
        meeting = _meeting(db, online)
        assert client.post(f"/meetings/{meeting.id}/start", headers=auth_headers(doctor)).json()["status"] == "STARTED"
        assert client.post(f"/meetings/{meeting.id}/end", headers=auth_headers(doctor)).json()["status"] == "ENDED"

    def test_update_pushes_changes_to_zoom(self, client, db, doctor, online, zoom):
        meeting = _meeting(db, online)
        response = client.patch(f"/meetings/{meeting.id}", json={"duration": 45}, headers=auth_headers(doctor))

        assert response.status_code == 200
        assert response.json()["duration"] == 45
        zoom.update_meeting.assert_awaited_once_with("999", duration=45)

    def test_ended_meeting_cannot_be_updated(self, client, db, doctor, online, zoom):
        meeting = _meeting(db, online, status=MeetingStatus.ENDED)
        response = client.patch(f"/meetings/{meeting.id}", json={"topic": "Follow-up"}, headers=auth_headers(doctor))
        assert response.status_code == 400

    def test_cancel_keeps_row(self, client, db, doctor, online, zoom):
        meeting = _meeting(db, online)
        response = client.post(f"/meetings/{meeting.id}/cancel", headers=auth_headers(doctor))

        assert response.json()["status"] == "CANCELLED"
        zoom.delete_meeting.assert_awaited_once_with("999")

    def test_stats_for_admin(self, client, db, patient, doctor, online):
        _meeting(db, online, status=MeetingStatus.ENDED)
        stats = client.get("/meetings/stats", headers=auth_headers(make_admin(db))).json()
        assert stats["total_meetings"] == 1
        assert stats["completed_meetings"] == 1


class TestCleanup:
    def test_counts_finished_meetings_older_than_cutoff(self, db, patient, doctor):
        old = make_appointment(
            db, patient, doctor, scheduled=NOW - timedelta(days=45), status=AppointmentStatus.COMPLETED
        )
        _meeting(db, old, zoom_id="old", status=MeetingStatus.ENDED)

        assert MeetingService(db).cleanup_old_meetings() == 1


class TestZoomWebhook:
    @pytest.fixture
    def secret(self, monkeypatch):
        monkeypatch.setattr("app.domain.meetings.router.ZOOM_WEBHOOK_SECRET_TOKEN", ZOOM_SECRET)
        return ZOOM_SECRET

    def _post(self, client, payload, signature=None):
        body = json.dumps(payload).encode()
        timestamp = str(int(time.time()))
        return client.post(
            "/webhooks/zoom",
            content=body,
            headers={
                "x-zm-request-timestamp": timestamp,
                "x-zm-signature": signature or compute_zoom_signature(ZOOM_SECRET, timestamp, body),
                "content-type": "application/json",
            },
        )

    def test_url_validation(self, client, secret):
        response = self._post(client, {"event": "endpoint.url_validation", "payload": {"plainToken": "abc"}})

        expected = hmac.new(ZOOM_SECRET.encode(), b"abc", hashlib.sha256).hexdigest()
        assert response.json() == {"plainToken": "abc", "encryptedToken": expected}

    def test_url_validation_without_secret(self, client):
        response = client.post(
            "/webhooks/zoom", json={"event": "endpoint.url_validation", "payload": {"plainToken": "abc"}}
        )
        assert response.status_code == 500

    def test_meeting_started_updates_status(self, client, db, online, secret):
        meeting = _meeting(db, online, zoom_id="555")

        response = self._post(client, {"event": "meeting.started", "payload": {"object": {"id": 555}}})

        assert response.json() == {"status": "ok"}
        db.expire_all()
        assert db.get(ZoomMeeting, meeting.id).status == MeetingStatus.STARTED

    def test_bad_signature_is_401(self, client, db, online, secret):
        response = self._post(client, {"event": "meeting.ended", "payload": {"object": {"id": 1}}}, signature="v0=bad")
        assert response.status_code == 401

    def test_invalid_json_is_400(self, client):
        response = client.post("/webhooks/zoom", content=b"not json")
        assert response.status_code == 400

    def test_events_rejected_without_secret(self, client, db, online):
        meeting = _meeting(db, online, zoom_id="777")

        response = client.post("/webhooks/zoom", json={"event": "meeting.ended", "payload": {"object": {"id": 777}}})

        assert response.status_code == 500
        db.expire_all()
        assert db.get(ZoomMeeting, meeting.id).status == MeetingStatus.SCHEDULED
