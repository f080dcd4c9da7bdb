"""Medical document router"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import DocumentType, User, UserRole
from ...rate_limiter import create_rate_limiter
from ...shared.pagination import Page
from .schemas import DocumentResponse, DocumentUpdate, DownloadUrlResponse, MedicalHistorySummary
from .service import DocumentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Medical Documents"])

rate_limit_upload = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="document_upload")


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    """Dependency injection for DocumentService"""
    return DocumentService(db)


# ============================================================================
# UPLOAD
# ============================================================================


@router.post("", response_model=DocumentResponse, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    document_type: DocumentType = Form(DocumentType.OTHER),
    description: Optional[str] = Form(None),
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    service: DocumentService = Depends(get_document_service),
    _: None = Depends(rate_limit_upload),
):
    """Upload a medical document (PDF, image, Word or text; max 10MB)"""
    return await service.upload_document(current_user, file, document_type, description)


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=Page[DocumentResponse])
async def list_documents(
    patient_id: Optional[int] = Query(None),
    appointment_id: Optional[int] = Query(None),
    document_type: Optional[DocumentType] = Query(None),
    file_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    search_term: Optional[str] = Query(None, max_length=100),
    sort_by: str = Query("uploaded_at", pattern="^(uploaded_at|file_name|document_type)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """
    List documents.

    Patients see their own; doctors pass patient_id and the appointment_id
    that grants access; admins may list any patient or all documents.
    """
    return service.list_documents(
        current_user,
        patient_id=patient_id,
        appointment_id=appointment_id,
        document_type=document_type,
        file_type=file_type,
        start_date=start_date,
        end_date=end_date,
        search_term=search_term,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/summary", response_model=MedicalHistorySummary)
async def get_medical_history_summary(
    patient_id: Optional[int] = Query(None),
    appointment_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.get_medical_history_summary(current_user, patient_id, appointment_id)


@router.get("/search", response_model=Page[DocumentResponse])
async def search_documents(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: DocumentService = Depends(get_document_service),
):
    return service.search_documents(q, page, limit)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    appointment_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.get_document(document_id, current_user, appointment_id)


@router.get("/{document_id}/download", response_model=DownloadUrlResponse)
async def get_download_url(
    document_id: int,
    appointment_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Presigned download link, valid for one hour"""
    return service.get_download_url(document_id, current_user, appointment_id)


# ============================================================================
# MUTATIONS
# ============================================================================


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: int,
    data: DocumentUpdate,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.update_document(document_id, current_user, data)


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.delete_document(document_id, current_user)
