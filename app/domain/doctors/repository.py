"""Doctor repository - Database operations for doctor profiles"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import DoctorProfile

SORT_COLUMNS = {
    "name": DoctorProfile.name,
    "rating": DoctorProfile.rating,
    "experience": DoctorProfile.years_of_experience,
    "fee": DoctorProfile.consultation_fee,
}


class DoctorRepository:
    """Repository for doctor profile database operations"""

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Optional[DoctorProfile]:
        return (
            db.query(DoctorProfile)
            .options(joinedload(DoctorProfile.user))
            .filter(DoctorProfile.id == doctor_id)
            .first()
        )

    @staticmethod
    def search_query(
        db: Session,
        name: Optional[str] = None,
        min_rating: Optional[float] = None,
        max_consultation_fee: Optional[float] = None,
        location: Optional[str] = None,
        is_accepting_patients: bool = True,
        sort_by: str = "rating",
        sort_order: str = "desc",
    ):
        """Verified doctors matching the column filters, sorted"""
        query = db.query(DoctorProfile).filter(
            DoctorProfile.license_verified.is_(True),
            DoctorProfile.is_accepting_patients.is_(is_accepting_patients),
        )
        if name:
            query = query.filter(func.lower(DoctorProfile.name).contains(name.lower()))
        if min_rating is not None:
            query = query.filter(DoctorProfile.rating >= min_rating)
        if max_consultation_fee is not None:
            query = query.filter(DoctorProfile.consultation_fee <= max_consultation_fee)
        if location:
            query = query.filter(func.lower(DoctorProfile.clinic_address).contains(location.lower()))

        column = SORT_COLUMNS.get(sort_by, DoctorProfile.rating)
        order = column.asc() if sort_order == "asc" else column.desc()
        return query.order_by(order, DoctorProfile.id.asc())

    @staticmethod
    def pending_verification(db: Session) -> list[DoctorProfile]:
        return (
            db.query(DoctorProfile)
            .options(joinedload(DoctorProfile.user))
            .filter(DoctorProfile.license_verified.is_(False))
            .order_by(DoctorProfile.created_at.asc(), DoctorProfile.id.asc())
            .all()
        )
