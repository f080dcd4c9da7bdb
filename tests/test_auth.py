"""Registration, login, token and profile endpoint tests"""

from factories import PASSWORD, auth_headers, make_patient

from app.domain.accounts.service import EMAIL_VERIFICATION_SALT
from app.models import DoctorProfile, User, UserRole
from app.security_utils import generate_timed_token

PATIENT_PAYLOAD = {
    "email": "New.Patient@Example.com",
    "password": PASSWORD,
    "name": "New Patient",
    "phone": "(415) 555-0199",
    "age": 41,
    "gender": "Male",
    "address": "221B Baker Street, London",
}

DOCTOR_PAYLOAD = {
    "email": "dr.who@example.com",
    "password": PASSWORD,
    "name": "John Who",
    "phone": "+44 20 7946 0958",
    "medical_license_number": "gmc-123456",
    "qualifications": ["MBBS", "MRCP"],
    "years_of_experience": 12,
    "specializations": ["Cardiology"],
    "clinic_name": "Harley Heart Clinic",
    "clinic_address": "10 Harley Street, London",
    "consultation_fee": 120.0,
}


class TestRegistration:
    def test_register_patient_returns_tokens_and_profile(self, client):
        response = client.post("/auth/register/patient", json=PATIENT_PAYLOAD)

        assert response.status_code == 201
        body = response.json()
        assert body["access_token"] and body["refresh_token"]
        assert body["user"]["email"] == "new.patient@example.com"
        assert body["user"]["role"] == "PATIENT"
        assert body["user"]["is_verified"] is False
        assert body["profile"]["phone"] == "+14155550199"
        assert body["profile"]["gender"] == "male"

    def test_duplicate_email_is_conflict(self, client, patient):
        payload = {**PATIENT_PAYLOAD, "email": patient.email}
        response = client.post("/auth/register/patient", json=payload)
        assert response.status_code == 409

    def test_weak_password_rejected(self, client):
        payload = {**PATIENT_PAYLOAD, "password": "password"}
        response = client.post("/auth/register/patient", json=payload)
        assert response.status_code == 400

    def test_invalid_age_is_validation_error(self, client):
        payload = {**PATIENT_PAYLOAD, "age": 0}
        response = client.post("/auth/register/patient", json=payload)
        assert response.status_code == 422

    def test_register_doctor_starts_unverified(self, client, db):
        response = client.post("/auth/register/doctor", json=DOCTOR_PAYLOAD)

        assert response.status_code == 201
        doctor = db.query(DoctorProfile).one()
        assert doctor.medical_license_number == "GMC-123456"
        assert doctor.license_verified is False
        assert doctor.clinic_latitude is None

    def test_duplicate_license_is_conflict(self, client):
        client.post("/auth/register/doctor", json=DOCTOR_PAYLOAD)
        payload = {**DOCTOR_PAYLOAD, "email": "another@example.com"}
        response = client.post("/auth/register/doctor", json=payload)
        assert response.status_code == 409

    def test_register_admin_requires_admin(self, client, patient, admin):
        payload = {"email": "ops@example.com", "password": PASSWORD, "name": "Ops Admin", "phone": "4155550123"}

        denied = client.post("/auth/register/admin", json=payload, headers=auth_headers(patient))
        assert denied.status_code == 403

        created = client.post("/auth/register/admin", json=payload, headers=auth_headers(admin))
        assert created.status_code == 201
        assert created.json()["user"]["is_verified"] is True


class TestSession:
    def test_login_and_me(self, client, patient):
        response = client.post("/auth/login", json={"email": patient.email.upper(), "password": PASSWORD})
        assert response.status_code == 200

        token = response.json()["access_token"]
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["profile"]["name"] == "Jane Patient"

    def test_login_wrong_password(self, client, patient):
        response = client.post("/auth/login", json={"email": patient.email, "password": "Wr0ng!pass"})
        assert response.status_code == 401

    def test_login_deactivated_account(self, client, db):
        user = make_patient(db, is_active=False)
        response = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 403

    def test_missing_authorization_header_is_401(self, client):
        response = client.get("/auth/me")
        assert response.status_code in (401, 403)

    def test_malformed_token_is_401(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_refresh_issues_new_pair(self, client, patient):
        login = client.post("/auth/login", json={"email": patient.email, "password": PASSWORD}).json()

        response = client.post("/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    def test_access_token_cannot_refresh(self, client, patient):
        login = client.post("/auth/login", json={"email": patient.email, "password": PASSWORD}).json()
        response = client.post("/auth/refresh", json={"refresh_token": login["access_token"]})
        assert response.status_code == 401

    def test_refresh_token_cannot_authenticate(self, client, patient):
        login = client.post("/auth/login", json={"email": patient.email, "password": PASSWORD}).json()
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {login['refresh_token']}"})
        assert response.status_code == 401


class TestAccountSecurity:
    def test_update_password(self, client, patient):
        headers = auth_headers(patient)
        response = client.put(
            "/auth/password",
            json={"current_password": PASSWORD, "new_password": "An0ther!Secret"},
            headers=headers,
        )
        assert response.status_code == 200

        login = client.post("/auth/login", json={"email": patient.email, "password": "An0ther!Secret"})
        assert login.status_code == 200

    def test_update_password_wrong_current(self, client, patient):
        response = client.put(
            "/auth/password",
            json={"current_password": "Nope!1234", "new_password": "An0ther!Secret"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 400

    def test_verify_email(self, client, db):
        user = make_patient(db, is_verified=False)
        token = generate_timed_token({"user_id": user.id, "email": user.email}, salt=EMAIL_VERIFICATION_SALT)

        response = client.post("/auth/verify-email", json={"token": token})

        assert response.status_code == 200
        db.expire_all()
        assert db.get(User, user.id).is_verified is True

    def test_verify_email_rejects_other_salt(self, client, db):
        user = make_patient(db, is_verified=False)
        token = generate_timed_token({"user_id": user.id, "email": user.email}, salt="password-reset")
        response = client.post("/auth/verify-email", json={"token": token})
        assert response.status_code == 400

    def test_deactivate_blocks_further_access(self, client, patient):
        headers = auth_headers(patient)
        assert client.post("/auth/deactivate", headers=headers).status_code == 200
        assert client.get("/auth/me", headers=headers).status_code == 403


class TestProfiles:
    def test_patient_updates_own_profile(self, client, patient):
        response = client.put(
            "/profile/patient",
            json={"address": "42 Wallaby Way, Sydney", "phone": "+61 2 9374 4000"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 200
        assert response.json()["address"] == "42 Wallaby Way, Sydney"
        assert response.json()["phone"] == "+61293744000"

    def test_doctor_cannot_update_patient_profile(self, client, doctor):
        response = client.put("/profile/patient", json={"age": 50}, headers=auth_headers(doctor))
        assert response.status_code == 403

    def test_doctor_updates_fee(self, client, doctor):
        response = client.put("/profile/doctor", json={"consultation_fee": 95.5}, headers=auth_headers(doctor))
        assert response.status_code == 200
        assert response.json()["consultation_fee"] == 95.5

    def test_profile_picture_requires_storage(self, client, doctor):
        response = client.post(
            "/profile/doctor/picture",
            files={"file": ("me.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
            headers=auth_headers(doctor),
        )
        assert response.status_code == 503

    def test_role_is_reported(self, client, admin):
        response = client.get("/auth/me", headers=auth_headers(admin))
        assert response.json()["user"]["role"] == UserRole.ADMIN.value
