"""Doctor search, verification and maps tests"""

from unittest.mock import AsyncMock

import pytest
from factories import auth_headers, make_doctor

from app.domain.doctors.geo import classify_provider, haversine_km
from app.domain.doctors.maps_service import maps_service
from app.models import AdminActivityLog, Notification, NotificationType

# Union Square, San Francisco
ORIGIN = (37.7880, -122.4075)


class TestGeo:
    def test_one_degree_of_longitude_on_equator(self):
        assert haversine_km(0, 0, 0, 1) == 111.19

    def test_same_point(self):
        assert haversine_km(*ORIGIN, *ORIGIN) == 0.0

    def test_san_francisco_to_los_angeles(self):
        assert haversine_km(37.7749, -122.4194, 34.0522, -118.2437) == pytest.approx(559, abs=2)

    @pytest.mark.parametrize(
        "name,types,expected",
        [
            ("St. Mary's Medical Center", ["hospital", "health"], "hospital"),
            ("Smile Studio", ["dentist"], "doctor"),
            ("Dr. Chen Family Practice", ["doctor"], "doctor"),
            ("Mission Wellness", ["health"], "clinic"),
        ],
    )
    def test_classify_provider(self, name, types, expected):
        assert classify_provider(name, types) == expected


class TestSearch:
    def test_only_verified_doctors_listed(self, client, db):
        make_doctor(db, name="Verified Vera")
        make_doctor(db, name="Pending Paul", verified=False)

        page = client.get("/doctors").json()
        assert [d["name"] for d in page["data"]] == ["Verified Vera"]

    def test_specialization_matches_whole_entry_ignoring_case(self, client, db):
        make_doctor(db, name="Cardio Carl", specializations=["Cardiology", "Internal Medicine"])
        make_doctor(db, name="Derm Dana", specializations=["Dermatology"])

        page = client.get("/doctors?specialization=cardiology").json()
        assert [d["name"] for d in page["data"]] == ["Cardio Carl"]
        assert page["pagination"]["total"] == 1

    def test_partial_specialization_does_not_match(self, client, db):
        make_doctor(db, name="Cardio Carl", specializations=["Cardiology"])
        assert client.get("/doctors?specialization=Card").json()["pagination"]["total"] == 0

    def test_limit_above_cap_is_clamped(self, client, db):
        make_doctor(db, name="Verified Vera")

        response = client.get("/doctors?limit=150")

        assert response.status_code == 200
        assert response.json()["pagination"]["limit"] == 100

    def test_fee_filter_and_sort(self, client, db):
        make_doctor(db, name="Cheap", fee=40.0)
        make_doctor(db, name="Mid", fee=90.0)
        make_doctor(db, name="Pricey", fee=300.0)

        page = client.get("/doctors?max_consultation_fee=100&sort_by=fee&sort_order=asc").json()
        assert [d["name"] for d in page["data"]] == ["Cheap", "Mid"]

    def test_not_accepting_hidden_by_default(self, client, db):
        make_doctor(db, name="Full Fiona", accepting=False)
        assert client.get("/doctors").json()["pagination"]["total"] == 0
        assert client.get("/doctors?is_accepting_patients=false").json()["pagination"]["total"] == 1

    def test_radius_search_sorted_by_distance(self, client, db):
        make_doctor(db, name="Oakland", latitude=37.8044, longitude=-122.2712)
        make_doctor(db, name="Mission", latitude=37.7599, longitude=-122.4148)
        make_doctor(db, name="Los Angeles", latitude=34.0522, longitude=-118.2437)
        make_doctor(db, name="No Coordinates")

        page = client.get(f"/doctors?latitude={ORIGIN[0]}&longitude={ORIGIN[1]}&radius_km=25").json()

        assert [d["name"] for d in page["data"]] == ["Mission", "Oakland"]
        assert page["data"][0]["distance_km"] < page["data"][1]["distance_km"]
        assert page["pagination"]["total"] == 2

    def test_distance_sort_spans_pages(self, client, db):
        make_doctor(db, name="Far", latitude=37.8044, longitude=-122.2712)
        make_doctor(db, name="Near", latitude=37.7599, longitude=-122.4148)

        page = client.get(f"/doctors?latitude={ORIGIN[0]}&longitude={ORIGIN[1]}&limit=1").json()
        assert [d["name"] for d in page["data"]] == ["Near"]
        assert page["pagination"]["total_pages"] == 2

    def test_public_profile(self, client, db, doctor):
        body = client.get(f"/doctors/{doctor.doctor_profile.id}").json()
        assert body["clinic_name"] == "Downtown Clinic"
        assert "medical_license_number" not in body

    def test_unknown_doctor_is_404(self, client):
        assert client.get("/doctors/424242").status_code == 404


class TestVerification:
    def test_pending_list_is_admin_only(self, client, db, patient, admin):
        make_doctor(db, name="Pending Paul", verified=False)

        assert client.get("/doctors/pending-verification", headers=auth_headers(patient)).status_code == 403

        pending = client.get("/doctors/pending-verification", headers=auth_headers(admin)).json()
        assert [d["name"] for d in pending] == ["Pending Paul"]
        assert pending[0]["medical_license_number"].startswith("LIC-")

    def test_approve_logs_and_notifies(self, client, db, admin):
        pending = make_doctor(db, name="Pending Paul", verified=False)
        profile_id = pending.doctor_profile.id

        response = client.post(
            f"/doctors/{profile_id}/verify",
            json={"approve": True, "notes": "License checked against registry"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["license_verified"] is True
        log = db.query(AdminActivityLog).one()
        assert (log.action, log.target_id) == ("verify_doctor", profile_id)
        notification = db.query(Notification).filter(Notification.user_id == pending.id).one()
        assert notification.type == NotificationType.DOCTOR_VERIFIED

    def test_reject(self, client, db, admin):
        pending = make_doctor(db, verified=False)
        response = client.post(
            f"/doctors/{pending.doctor_profile.id}/verify",
            json={"approve": False, "notes": "License expired"},
            headers=auth_headers(admin),
        )
        assert response.json()["license_verified"] is False
        assert db.query(AdminActivityLog).one().action == "reject_doctor"


class TestMaps:
    @pytest.fixture
    def google(self, monkeypatch):
        fake = AsyncMock()
        monkeypatch.setattr(maps_service, "api_key", "test-key")
        monkeypatch.setattr(maps_service, "_get", fake)
        return fake

    def test_requires_configuration(self, client, patient):
        response = client.get("/maps/geocode?address=500 Mission St", headers=auth_headers(patient))
        assert response.status_code == 503

    def test_nearby_providers_sorted_and_classified(self, client, patient, google):
        google.return_value = {
            "status": "OK",
            "results": [
                {
                    "name": "UCSF Medical Center",
                    "types": ["hospital"],
                    "geometry": {"location": {"lat": 37.7631, "lng": -122.4575}},
                },
                {
                    "name": "Union Square Clinic",
                    "types": ["health"],
                    "geometry": {"location": {"lat": 37.7885, "lng": -122.4080}},
                },
                {"name": "No geometry"},
            ],
        }

        response = client.get(
            f"/maps/nearby-providers?latitude={ORIGIN[0]}&longitude={ORIGIN[1]}", headers=auth_headers(patient)
        )

        providers = response.json()
        assert [p["name"] for p in providers] == ["Union Square Clinic", "UCSF Medical Center"]
        assert [p["provider_type"] for p in providers] == ["clinic", "hospital"]

    def test_geocode_not_found(self, client, patient, google):
        google.return_value = {"status": "ZERO_RESULTS", "results": []}
        response = client.get("/maps/geocode?address=nowhere at all", headers=auth_headers(patient))
        assert response.status_code == 404

    def test_distance_unroutable_is_minus_one(self, client, patient, google):
        google.return_value = {"status": "OK", "rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}
        response = client.get(
            "/maps/distance?origin_lat=37.78&origin_lng=-122.40&dest_lat=21.30&dest_lng=-157.85",
            headers=auth_headers(patient),
        )
        assert response.json() == {"distance_km": -1}
