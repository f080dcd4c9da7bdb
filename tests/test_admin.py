"""Admin analytics, user management and payment reporting tests"""

from datetime import datetime, timedelta

import pytest
from factories import BOOKABLE, NOW, auth_headers, make_admin, make_appointment, make_doctor, make_patient, make_payment

from app.domain.admin.service import month_starts
from app.models import AdminActivityLog, AppointmentStatus, PaymentStatus, User


@pytest.fixture(autouse=True)
def _clock(frozen_now):
    return frozen_now


def _paid(db, patient, doctor, amount, status=PaymentStatus.COMPLETED, hours=0, **kwargs):
    appointment = make_appointment(
        db, patient, doctor, scheduled=BOOKABLE + timedelta(hours=hours), status=AppointmentStatus.CONFIRMED
    )
    return make_payment(db, appointment, status=status, amount=amount, **kwargs)


class TestMonthStarts:
    def test_wraps_year(self):
        assert month_starts(datetime(2026, 2, 15), 4) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


class TestAnalytics:
    def test_shape_and_counts(self, client, db, patient, doctor, admin):
        make_doctor(db, name="Pending Paul", verified=False)
        make_appointment(db, patient, doctor, status=AppointmentStatus.PAYMENT_PENDING)
        _paid(db, patient, doctor, 100.0, hours=2, processed_at=NOW - timedelta(days=2))
        _paid(db, patient, doctor, 50.0, hours=4, processed_at=datetime(2026, 8, 3))

        analytics = client.get("/admin/analytics", headers=auth_headers(admin)).json()

        users = analytics["users"]
        assert users["total_users"] == 4
        assert users["by_role"] == {"PATIENT": 1, "DOCTOR": 2, "ADMIN": 1}
        assert users["pending_doctor_verifications"] == 1

        appointments = analytics["appointments"]
        assert appointments["total_appointments"] == 3
        assert appointments["upcoming"] == 3
        assert appointments["by_status"]["CONFIRMED"] == 2

        payments = analytics["payments"]
        assert payments["total_revenue"] == 150.0
        assert payments["revenue_this_month"] == 100.0
        assert payments["average_transaction"] == 75.0
        assert len(payments["monthly_revenue"]) == 12
        assert payments["monthly_revenue"][-1] == {"year": 2026, "month": 10, "revenue": 100.0}
        assert payments["monthly_revenue"][-3] == {"year": 2026, "month": 8, "revenue": 50.0}

        assert analytics["ratings"]["rating_distribution"] == {str(star): 0 for star in range(1, 6)}

    def test_requires_admin(self, client, doctor):
        assert client.get("/admin/analytics", headers=auth_headers(doctor)).status_code == 403


class TestUsers:
    def test_search_by_profile_name(self, client, db, patient, doctor, admin):
        page = client.get("/admin/users?search=alex", headers=auth_headers(admin)).json()
        assert [u["name"] for u in page["data"]] == ["Alex Smith"]

    def test_filter_by_role(self, client, db, patient, doctor, admin):
        make_patient(db, name="Second Patient")
        page = client.get("/admin/users?role=PATIENT", headers=auth_headers(admin)).json()
        assert page["pagination"]["total"] == 2
        assert {u["role"] for u in page["data"]} == {"PATIENT"}

    def test_deactivate_user_is_logged(self, client, db, patient, admin):
        response = client.patch(
            f"/admin/users/{patient.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        db.expire_all()
        assert db.get(User, patient.id).is_active is False
        log = db.query(AdminActivityLog).one()
        assert log.details == {"is_active": False}

    def test_unchanged_status_is_not_logged(self, client, db, patient, admin):
        client.patch(f"/admin/users/{patient.id}/status", json={"is_verified": True}, headers=auth_headers(admin))
        assert db.query(AdminActivityLog).count() == 0

    def test_cannot_deactivate_self(self, client, admin):
        response = client.patch(
            f"/admin/users/{admin.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )
        assert response.status_code == 400

    def test_empty_update_is_400(self, client, patient, admin):
        response = client.patch(f"/admin/users/{patient.id}/status", json={}, headers=auth_headers(admin))
        assert response.status_code == 400

    def test_unknown_user_is_404(self, client, admin):
        response = client.patch("/admin/users/9999/status", json={"is_active": True}, headers=auth_headers(admin))
        assert response.status_code == 404


class TestPayments:
    def test_transactions_filters(self, client, db, patient, doctor, admin):
        _paid(db, patient, doctor, 100.0, hours=0)
        _paid(db, patient, doctor, 30.0, hours=2)
        _paid(db, patient, doctor, 60.0, status=PaymentStatus.REFUNDED, hours=4)

        completed = client.get("/admin/payments?status=COMPLETED", headers=auth_headers(admin)).json()
        assert completed["pagination"]["total"] == 2
        assert completed["data"][0]["doctor_name"] == "Alex Smith"

        ranged = client.get("/admin/payments?min_amount=50&max_amount=80", headers=auth_headers(admin)).json()
        assert [p["amount"] for p in ranged["data"]] == [60.0]

    def test_inverted_amount_range_is_400(self, client, admin):
        response = client.get("/admin/payments?min_amount=90&max_amount=10", headers=auth_headers(admin))
        assert response.status_code == 400

    def test_reconciliation_totals(self, client, db, patient, doctor, admin):
        _paid(db, patient, doctor, 100.0, hours=0)
        _paid(db, patient, doctor, 40.0, hours=2)
        _paid(db, patient, doctor, 80.0, status=PaymentStatus.REFUNDED, hours=4)
        _paid(db, patient, doctor, 25.0, status=PaymentStatus.FAILED, hours=6)
        _paid(db, patient, doctor, 70.0, status=PaymentStatus.PENDING, hours=8)

        report = client.get("/admin/payments/reconciliation", headers=auth_headers(admin)).json()

        assert report["completed_total"] == 140.0
        assert report["completed_count"] == 2
        assert report["refunded_total"] == 80.0
        assert report["failed_count"] == 1
        assert report["pending_count"] == 1
        assert report["gross_revenue"] == 220.0
        assert report["net_revenue"] == 140.0

    def test_reconciliation_date_window(self, client, db, patient, doctor, admin):
        _paid(db, patient, doctor, 100.0, hours=0, created_at=datetime(2026, 9, 10))
        _paid(db, patient, doctor, 40.0, hours=2, created_at=datetime(2026, 10, 10))

        report = client.get(
            "/admin/payments/reconciliation?date_from=2026-10-01T00:00:00&date_to=2026-10-31T23:59:59",
            headers=auth_headers(admin),
        ).json()
        assert report["completed_total"] == 40.0

    def test_reconciliation_inverted_dates(self, client, admin):
        response = client.get(
            "/admin/payments/reconciliation?date_from=2026-10-31T00:00:00&date_to=2026-10-01T00:00:00",
            headers=auth_headers(admin),
        )
        assert response.status_code == 400


class TestAppointmentsAndActivity:
    def test_admin_sees_every_appointment(self, client, db, patient, doctor, admin):
        make_appointment(db, patient, doctor)
        make_appointment(db, make_patient(db, name="Other"), doctor, scheduled=BOOKABLE + timedelta(hours=2))

        page = client.get("/admin/appointments", headers=auth_headers(admin)).json()
        assert page["pagination"]["total"] == 2

    def test_activity_log_filters(self, client, db, patient, admin):
        other_admin = make_admin(db, name="Second Admin")
        client.patch(f"/admin/users/{patient.id}/status", json={"is_active": False}, headers=auth_headers(admin))
        client.patch(
            f"/admin/users/{patient.id}/status", json={"is_active": True}, headers=auth_headers(other_admin)
        )

        everything = client.get("/admin/activity-log", headers=auth_headers(admin)).json()
        mine = client.get(f"/admin/activity-log?admin_id={admin.id}", headers=auth_headers(admin)).json()

        assert everything["pagination"]["total"] == 2
        assert mine["pagination"]["total"] == 1
        assert mine["data"][0]["action"] == "update_user_status"
        assert mine["data"][0]["target_type"] == "user"
