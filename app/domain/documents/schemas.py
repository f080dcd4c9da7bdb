"""Medical document schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import DocumentType
from ...security_utils import sanitize_text


def clean_description(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = sanitize_text(v)
    if len(v) > 1000:
        raise ValueError("Description must be at most 1000 characters")
    return v or None


class DocumentUpdate(BaseModel):
    description: Optional[str] = None
    document_type: Optional[DocumentType] = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return clean_description(v)


class DocumentResponse(BaseModel):
    id: int
    patient_id: int
    file_name: str
    file_type: str
    file_size: int
    document_type: DocumentType
    description: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DownloadUrlResponse(BaseModel):
    url: str
    expires_in: int
    file_name: str


class MedicalHistorySummary(BaseModel):
    patient_id: int
    total_documents: int
    by_type: dict[str, int]
    recent_documents: list[DocumentResponse]
    last_upload_date: Optional[datetime] = None
