"""Medical document repository"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import DocumentType, MedicalDocument, PatientProfile

SORT_COLUMNS = {
    "uploaded_at": MedicalDocument.uploaded_at,
    "file_name": MedicalDocument.file_name,
    "document_type": MedicalDocument.document_type,
}


class DocumentRepository:
    """Repository for medical document database operations"""

    @staticmethod
    def get_document(db: Session, document_id: int) -> Optional[MedicalDocument]:
        return db.query(MedicalDocument).filter(MedicalDocument.id == document_id).first()

    @staticmethod
    def get_patient(db: Session, patient_id: int) -> Optional[PatientProfile]:
        return db.query(PatientProfile).filter(PatientProfile.id == patient_id).first()

    @staticmethod
    def create_document(db: Session, **data) -> MedicalDocument:
        document = MedicalDocument(**data)
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def filtered_query(
        db: Session,
        patient_id: Optional[int] = None,
        document_type: Optional[DocumentType] = None,
        file_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        sort_by: str = "uploaded_at",
        sort_order: str = "desc",
    ):
        query = db.query(MedicalDocument).options(joinedload(MedicalDocument.patient))
        if patient_id is not None:
            query = query.filter(MedicalDocument.patient_id == patient_id)
        if document_type:
            query = query.filter(MedicalDocument.document_type == document_type)
        if file_type:
            query = query.filter(MedicalDocument.file_type == file_type)
        if start_date:
            query = query.filter(MedicalDocument.uploaded_at >= start_date)
        if end_date:
            query = query.filter(MedicalDocument.uploaded_at <= end_date)

        column = SORT_COLUMNS.get(sort_by, MedicalDocument.uploaded_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        return query.order_by(order, MedicalDocument.id.desc())
