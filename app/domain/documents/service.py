"""Medical document service - upload, retrieval and access control"""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ... import storage
from ...models import DocumentType, MedicalDocument, User, UserRole
from ...security_utils import sanitize_filename
from ...shared.pagination import build_page, normalize_paging, paginate_query
from .access_policy import AccessDecision, DocumentAction, check_document_access
from .repository import DocumentRepository
from .schemas import DocumentUpdate, clean_description
from .validation import validate_upload

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "medical-documents"
RECENT_DOCUMENTS = 5


def _enforce(decision: AccessDecision) -> None:
    if not decision.allowed:
        raise HTTPException(status_code=403, detail=decision.reason)


def matches_search(document: MedicalDocument, term: str, include_patient: bool = False) -> bool:
    term = term.lower()
    fields = [document.file_name, document.description]
    if include_patient and document.patient:
        fields.append(document.patient.name)
    return any(term in (value or "").lower() for value in fields)


class DocumentService:
    """Service layer for medical documents"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository()

    def _get_document(self, document_id: int) -> MedicalDocument:
        document = self.repo.get_document(self.db, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def _authorized_document(
        self, document_id: int, user: User, appointment_id: Optional[int], action: DocumentAction
    ) -> MedicalDocument:
        document = self._get_document(document_id)
        _enforce(check_document_access(self.db, user, document.patient_id, appointment_id, action))
        return document

    def _resolve_patient(self, user: User, patient_id: Optional[int], appointment_id: Optional[int]) -> Optional[int]:
        """Patient whose documents are being listed; None means every patient (admin only)"""
        if user.role == UserRole.PATIENT:
            if not user.patient_profile:
                raise HTTPException(status_code=403, detail="Patient profile required")
            patient_id = patient_id or user.patient_profile.id
        elif user.role == UserRole.DOCTOR and patient_id is None:
            raise HTTPException(status_code=400, detail="patient_id is required for doctor access")

        if patient_id is not None:
            _enforce(check_document_access(self.db, user, patient_id, appointment_id))
        return patient_id

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_document(
        self,
        user: User,
        file: UploadFile,
        document_type: DocumentType = DocumentType.OTHER,
        description: Optional[str] = None,
    ) -> MedicalDocument:
        patient = user.patient_profile
        if user.role != UserRole.PATIENT or not patient:
            raise HTTPException(status_code=403, detail="Only patients can upload medical documents")

        contents = await file.read()
        content_type = (file.content_type or "").split(";")[0].strip().lower()
        try:
            extension = validate_upload(file.filename or "", content_type, len(contents))
            description = clean_description(description)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if not storage.is_configured():
            raise HTTPException(status_code=503, detail="File storage is not configured")

        key = storage.build_object_key(STORAGE_PREFIX, patient.id, extension)
        try:
            storage.upload_bytes(key, contents, content_type)
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to store document") from e

        document = self.repo.create_document(
            self.db,
            patient_id=patient.id,
            file_name=sanitize_filename(file.filename),
            file_url=key,
            file_type=content_type,
            file_size=len(contents),
            document_type=document_type,
            description=description,
        )
        logger.info(f"📄 Document {document.id} uploaded for patient {patient.id} ({len(contents)} bytes)")
        return document

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_documents(
        self,
        user: User,
        patient_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        document_type: Optional[DocumentType] = None,
        file_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search_term: Optional[str] = None,
        sort_by: str = "uploaded_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        page, limit = normalize_paging(page, limit)
        patient_id = self._resolve_patient(user, patient_id, appointment_id)

        query = self.repo.filtered_query(
            self.db, patient_id, document_type, file_type, start_date, end_date, sort_by, sort_order
        )
        if not search_term:
            items, total = paginate_query(query, page, limit)
            return build_page(items, total, page, limit)

        # Descriptions are encrypted at rest, so text search runs after decryption
        matches = [d for d in query.all() if matches_search(d, search_term)]
        start = (page - 1) * limit
        return build_page(matches[start : start + limit], len(matches), page, limit)

    def get_document(self, document_id: int, user: User, appointment_id: Optional[int] = None) -> MedicalDocument:
        return self._authorized_document(document_id, user, appointment_id, DocumentAction.READ)

    def get_download_url(self, document_id: int, user: User, appointment_id: Optional[int] = None) -> dict:
        document = self._authorized_document(document_id, user, appointment_id, DocumentAction.READ)
        if not storage.is_configured():
            raise HTTPException(status_code=503, detail="File storage is not configured")
        try:
            url = storage.generate_presigned_url(document.file_url, download_name=document.file_name)
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to generate download link") from e
        logger.info(f"⬇️ Download link issued for document {document.id} to user {user.id}")
        return {"url": url, "expires_in": storage.PRESIGNED_URL_EXPIRATION, "file_name": document.file_name}

    def get_medical_history_summary(
        self, user: User, patient_id: Optional[int] = None, appointment_id: Optional[int] = None
    ) -> dict:
        patient_id = self._resolve_patient(user, patient_id, appointment_id)
        if patient_id is None:
            raise HTTPException(status_code=400, detail="patient_id is required")

        documents = self.repo.filtered_query(self.db, patient_id).all()
        counts = Counter(d.document_type.value for d in documents)
        return {
            "patient_id": patient_id,
            "total_documents": len(documents),
            "by_type": {t.value: counts.get(t.value, 0) for t in DocumentType},
            "recent_documents": documents[:RECENT_DOCUMENTS],
            "last_upload_date": documents[0].uploaded_at if documents else None,
        }

    def search_documents(self, search_term: str, page: int = 1, limit: int = 10) -> dict:
        """Admin search across file names, descriptions and patient names"""
        page, limit = normalize_paging(page, limit)
        matches = [
            d
            for d in self.repo.filtered_query(self.db).all()
            if matches_search(d, search_term, include_patient=True)
        ]
        start = (page - 1) * limit
        return build_page(matches[start : start + limit], len(matches), page, limit)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_document(self, document_id: int, user: User, data: DocumentUpdate) -> MedicalDocument:
        document = self._authorized_document(document_id, user, None, DocumentAction.UPDATE)
        for key, value in data.model_dump(exclude_unset=True).items():
            if key == "document_type" and value is None:
                continue
            setattr(document, key, value)
        self.db.commit()
        self.db.refresh(document)
        return document

    def delete_document(self, document_id: int, user: User) -> dict:
        document = self._authorized_document(document_id, user, None, DocumentAction.DELETE)
        key = document.file_url

        if storage.is_configured():
            try:
                storage.delete_object(key)
            except storage.StorageError as e:
                raise HTTPException(status_code=502, detail="Failed to delete stored file") from e
        else:
            logger.warning(f"⚠️ Storage not configured; object {key} left in place")

        self.db.delete(document)
        self.db.commit()
        logger.info(f"🗑️ Document {document_id} deleted by user {user.id}")
        return {"message": "Document deleted successfully"}
