"""Review and doctor rating tests"""

from datetime import timedelta

import pytest
from factories import NOW, auth_headers, make_appointment, make_patient

from app.models import AdminActivityLog, AppointmentStatus, DoctorProfile


def _completed(db, patient, doctor, days_ago=1):
    return make_appointment(
        db, patient, doctor, scheduled=NOW - timedelta(days=days_ago), status=AppointmentStatus.COMPLETED
    )


def _review(client, patient, appointment, rating, comment=None):
    return client.post(
        "/reviews",
        json={"appointment_id": appointment.id, "rating": rating, "comment": comment},
        headers=auth_headers(patient),
    )


class TestCreateReview:
    def test_review_completed_appointment(self, client, db, patient, doctor):
        appointment = _completed(db, patient, doctor)

        response = _review(client, patient, appointment, 5, "Very thorough <b>and</b> kind")

        assert response.status_code == 201
        body = response.json()
        assert body["rating"] == 5
        assert body["doctor_name"] == "Alex Smith"
        assert "<b>" not in body["comment"]

    def test_rating_is_recalculated(self, client, db, patient, doctor):
        _review(client, patient, _completed(db, patient, doctor, days_ago=1), 5)
        _review(client, patient, _completed(db, patient, doctor, days_ago=2), 4)

        db.expire_all()
        profile = db.get(DoctorProfile, doctor.doctor_profile.id)
        assert profile.rating == 4.5
        assert profile.total_reviews == 2

    def test_unfinished_appointment_is_400(self, client, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)
        assert _review(client, patient, appointment, 4).status_code == 400

    def test_second_review_is_409(self, client, db, patient, doctor):
        appointment = _completed(db, patient, doctor)
        _review(client, patient, appointment, 4)
        assert _review(client, patient, appointment, 2).status_code == 409

    def test_other_patients_appointment_is_403(self, client, db, patient, doctor):
        appointment = _completed(db, patient, doctor)
        stranger = make_patient(db, name="Stranger")
        assert _review(client, stranger, appointment, 1).status_code == 403

    def test_doctor_cannot_review(self, client, db, patient, doctor):
        appointment = _completed(db, patient, doctor)
        assert _review(client, doctor, appointment, 5).status_code == 403

    @pytest.mark.parametrize("rating", [0, 6, 3.5, True])
    def test_rating_must_be_whole_one_to_five(self, client, db, patient, doctor, rating):
        appointment = _completed(db, patient, doctor)
        assert _review(client, patient, appointment, rating).status_code == 422


class TestQueries:
    def test_doctor_reviews_and_stats(self, client, db, patient, doctor):
        _review(client, patient, _completed(db, patient, doctor, days_ago=1), 5, "Great")
        _review(client, patient, _completed(db, patient, doctor, days_ago=2), 3)
        _review(client, patient, _completed(db, patient, doctor, days_ago=3), 5)
        doctor_id = doctor.doctor_profile.id

        stats = client.get(f"/reviews/doctor/{doctor_id}/stats").json()
        assert stats["total_reviews"] == 3
        assert stats["average_rating"] == 4.33
        assert stats["rating_distribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 2}

        fives = client.get(f"/reviews/doctor/{doctor_id}?rating=5").json()
        assert fives["pagination"]["total"] == 2

        commented = client.get(f"/reviews/doctor/{doctor_id}?has_comment=true").json()
        assert [r["comment"] for r in commented["data"]] == ["Great"]

    def test_unknown_doctor_is_404(self, client):
        assert client.get("/reviews/doctor/999/stats").status_code == 404

    def test_my_reviews(self, client, db, patient, doctor):
        _review(client, patient, _completed(db, patient, doctor), 4)
        page = client.get("/reviews/me", headers=auth_headers(patient)).json()
        assert page["pagination"]["total"] == 1


class TestAdminModeration:
    def test_admin_deletes_review_and_rating_resets(self, client, db, patient, doctor, admin):
        review = _review(client, patient, _completed(db, patient, doctor), 2).json()

        response = client.delete(f"/reviews/{review['id']}", headers=auth_headers(admin))

        assert response.status_code == 200
        db.expire_all()
        profile = db.get(DoctorProfile, doctor.doctor_profile.id)
        assert profile.rating == 0.0
        assert profile.total_reviews == 0
        log = db.query(AdminActivityLog).one()
        assert (log.action, log.target_type, log.target_id) == ("delete_review", "review", review["id"])

    def test_patient_cannot_delete(self, client, db, patient, doctor):
        review = _review(client, patient, _completed(db, patient, doctor), 2).json()
        assert client.delete(f"/reviews/{review['id']}", headers=auth_headers(patient)).status_code == 403
