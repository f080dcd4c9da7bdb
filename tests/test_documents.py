"""Medical document access, validation and upload tests"""

import pytest
from factories import auth_headers, make_appointment, make_patient
from sqlalchemy import text

from app.domain.documents.access_policy import DocumentAction, check_document_access
from app.domain.documents.validation import MAX_FILE_SIZE, DocumentValidationError, validate_upload
from app.models import AppointmentStatus, DocumentType, MedicalDocument

PDF = b"%PDF-1.4 test document"


def _document(db, patient, file_name="blood-test.pdf", description=None, document_type=DocumentType.LAB_REPORT):
    document = MedicalDocument(
        patient_id=patient.patient_profile.id,
        file_name=file_name,
        file_url=f"medical-documents/{patient.patient_profile.id}/{file_name}",
        file_type="application/pdf",
        file_size=len(PDF),
        document_type=document_type,
        description=description,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


@pytest.fixture
def storage(monkeypatch):
    """In-memory stand-in for the object store"""
    objects = {}

    def upload_bytes(key, contents, content_type, inline=False):
        objects[key] = contents
        return key

    monkeypatch.setattr("app.storage.is_configured", lambda: True)
    monkeypatch.setattr("app.storage.upload_bytes", upload_bytes)
    monkeypatch.setattr("app.storage.delete_object", lambda key: objects.pop(key, None))
    monkeypatch.setattr(
        "app.storage.generate_presigned_url", lambda key, download_name=None: f"https://r2.example/{key}?sig=1"
    )
    return objects


class TestValidation:
    def test_accepts_pdf(self):
        assert validate_upload("Report.PDF", "application/pdf", 100) == ".pdf"

    def test_content_type_parameters_ignored(self):
        assert validate_upload("notes.txt", "text/plain; charset=utf-8", 10) == ".txt"

    @pytest.mark.parametrize(
        "filename,content_type,size,message",
        [
            ("a.pdf", "application/pdf", 0, "File is empty"),
            ("a.pdf", "application/pdf", MAX_FILE_SIZE + 1, "File size exceeds the 10MB limit"),
            ("../a.pdf", "application/pdf", 10, "File name contains invalid characters"),
            ("a.exe", "application/x-msdownload", 10, "File type not allowed"),
            ("a.png", "application/pdf", 10, "File extension does not match the file type"),
            ("a.zip", "application/pdf", 10, "File extension .zip is not allowed"),
        ],
    )
    def test_rejections(self, filename, content_type, size, message):
        with pytest.raises(DocumentValidationError, match=message.replace(".", r"\.")):
            validate_upload(filename, content_type, size)


class TestAccessPolicy:
    def test_patient_owns_documents(self, db, patient):
        assert check_document_access(db, patient, patient.patient_profile.id).allowed
        other = make_patient(db, name="Other")
        decision = check_document_access(db, other, patient.patient_profile.id)
        assert decision.reason == "Patients can only access their own documents"

    def test_doctor_needs_appointment_id(self, db, patient, doctor):
        decision = check_document_access(db, doctor, patient.patient_profile.id)
        assert decision.reason == "Appointment ID required for doctor access"

    def test_doctor_with_confirmed_appointment(self, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)
        assert check_document_access(db, doctor, patient.patient_profile.id, appointment.id).allowed

    def test_doctor_with_pending_appointment(self, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor)
        decision = check_document_access(db, doctor, patient.patient_profile.id, appointment.id)
        assert decision.reason == "No active appointment found with this patient"

    def test_doctor_is_read_only(self, db, patient, doctor):
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.COMPLETED)
        decision = check_document_access(
            db, doctor, patient.patient_profile.id, appointment.id, DocumentAction.DELETE
        )
        assert decision.reason == "Doctors have read-only access to medical documents"

    def test_admin_always_allowed(self, db, patient, admin):
        assert check_document_access(db, admin, patient.patient_profile.id, action=DocumentAction.DELETE).allowed


class TestUpload:
    def test_upload_without_storage_is_503(self, client, patient):
        response = client.post(
            "/documents",
            files={"file": ("scan.pdf", PDF, "application/pdf")},
            headers=auth_headers(patient),
        )
        assert response.status_code == 503

    def test_upload_stores_object_and_encrypts_description(self, client, db, patient, storage):
        response = client.post(
            "/documents",
            files={"file": ("scan.pdf", PDF, "application/pdf")},
            data={"document_type": "SCAN", "description": "MRI of left knee"},
            headers=auth_headers(patient),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["document_type"] == "SCAN"
        assert body["description"] == "MRI of left knee"
        assert body["file_size"] == len(PDF)
        assert "file_url" not in body

        [key] = storage.keys()
        assert key.startswith(f"medical-documents/{patient.patient_profile.id}/") and key.endswith(".pdf")
        stored = db.execute(text("SELECT description FROM medical_documents")).scalar()
        assert "MRI" not in stored

    def test_invalid_file_is_400(self, client, patient, storage):
        response = client.post(
            "/documents",
            files={"file": ("virus.exe", b"MZ", "application/x-msdownload")},
            headers=auth_headers(patient),
        )
        assert response.status_code == 400

    def test_doctor_cannot_upload(self, client, doctor, storage):
        response = client.post(
            "/documents",
            files={"file": ("scan.pdf", PDF, "application/pdf")},
            headers=auth_headers(doctor),
        )
        assert response.status_code == 403


class TestListing:
    def test_patient_lists_own_documents(self, client, db, patient):
        _document(db, patient)
        _document(db, make_patient(db, name="Other"), file_name="other.pdf")

        page = client.get("/documents", headers=auth_headers(patient)).json()
        assert page["pagination"]["total"] == 1
        assert page["data"][0]["file_name"] == "blood-test.pdf"

    def test_search_matches_decrypted_description(self, client, db, patient):
        _document(db, patient, file_name="a.pdf", description="Cholesterol panel")
        _document(db, patient, file_name="b.pdf", description="Chest x-ray")

        page = client.get("/documents?search_term=cholesterol", headers=auth_headers(patient)).json()
        assert [d["file_name"] for d in page["data"]] == ["a.pdf"]

    def test_doctor_requires_patient_id(self, client, doctor):
        response = client.get("/documents", headers=auth_headers(doctor))
        assert response.status_code == 400

    def test_doctor_reads_with_active_appointment(self, client, db, patient, doctor):
        _document(db, patient)
        appointment = make_appointment(db, patient, doctor, status=AppointmentStatus.CONFIRMED)

        page = client.get(
            f"/documents?patient_id={patient.patient_profile.id}&appointment_id={appointment.id}",
            headers=auth_headers(doctor),
        )
        assert page.status_code == 200
        assert page.json()["pagination"]["total"] == 1

    def test_doctor_without_appointment_is_403(self, client, db, patient, doctor):
        response = client.get(f"/documents?patient_id={patient.patient_profile.id}", headers=auth_headers(doctor))
        assert response.status_code == 403

    def test_summary_counts_every_type(self, client, db, patient):
        _document(db, patient, file_name="a.pdf")
        _document(db, patient, file_name="b.pdf", document_type=DocumentType.PRESCRIPTION)

        summary = client.get("/documents/summary", headers=auth_headers(patient)).json()
        assert summary["total_documents"] == 2
        assert summary["by_type"] == {"LAB_REPORT": 1, "PRESCRIPTION": 1, "SCAN": 0, "OTHER": 0}

    def test_admin_search_includes_patient_name(self, client, db, patient, admin):
        _document(db, patient)
        page = client.get("/documents/search?q=jane", headers=auth_headers(admin)).json()
        assert page["pagination"]["total"] == 1


class TestMutations:
    def test_patient_updates_description(self, client, db, patient):
        document = _document(db, patient)
        response = client.patch(
            f"/documents/{document.id}", json={"description": "Fasting sample"}, headers=auth_headers(patient)
        )
        assert response.json()["description"] == "Fasting sample"

    def test_download_link(self, client, db, patient, storage):
        document = _document(db, patient)
        body = client.get(f"/documents/{document.id}/download", headers=auth_headers(patient)).json()
        assert body["url"].startswith("https://r2.example/medical-documents/")
        assert body["expires_in"] == 3600

    def test_delete_removes_object(self, client, db, patient, storage):
        document = _document(db, patient)
        storage[document.file_url] = PDF

        response = client.delete(f"/documents/{document.id}", headers=auth_headers(patient))

        assert response.status_code == 200
        assert storage == {}
        assert db.query(MedicalDocument).count() == 0

    def test_doctor_cannot_delete(self, client, db, patient, doctor):
        document = _document(db, patient)
        response = client.delete(f"/documents/{document.id}", headers=auth_headers(doctor))
        assert response.status_code == 403
