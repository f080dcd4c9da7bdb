"""Review service - patient feedback and doctor ratings"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...auth import get_patient_profile_or_403
from ...cache import invalidate_doctor_profile_cache
from ...models import Appointment, AppointmentStatus, DoctorProfile, Review, User
from ...shared.pagination import build_page, normalize_paging, paginate_query
from ..admin.activity import log_admin_activity
from .repository import ReviewRepository
from .schemas import ReviewCreate

logger = logging.getLogger(__name__)


def serialize_review(review: Review) -> dict:
    return {
        "id": review.id,
        "appointment_id": review.appointment_id,
        "patient_id": review.patient_id,
        "doctor_id": review.doctor_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
        "patient_name": review.patient.name if review.patient else None,
        "doctor_name": review.doctor.name if review.doctor else None,
    }


class ReviewService:
    """Service layer for reviews"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReviewRepository()

    def _page(self, query, page: int, limit: int) -> dict:
        page, limit = normalize_paging(page, limit)
        items, total = paginate_query(query, page, limit)
        return build_page([serialize_review(r) for r in items], total, page, limit)

    def recalculate_doctor_rating(self, doctor_id: int) -> None:
        """Refresh the doctor's average rating and review count"""
        average, count = (
            self.db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.doctor_id == doctor_id)
            .one()
        )
        doctor = self.db.query(DoctorProfile).filter(DoctorProfile.id == doctor_id).first()
        if not doctor:
            return
        doctor.rating = round(float(average), 2) if count else 0.0
        doctor.total_reviews = count
        invalidate_doctor_profile_cache(doctor_id)

    def create_review(self, user: User, data: ReviewCreate) -> dict:
        patient = get_patient_profile_or_403(user)

        appointment = self.db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if appointment.patient_id != patient.id:
            raise HTTPException(status_code=403, detail="You can only review your own appointments")
        if appointment.status != AppointmentStatus.COMPLETED:
            raise HTTPException(status_code=400, detail="Only completed appointments can be reviewed")
        if self.repo.get_by_appointment(self.db, appointment.id):
            raise HTTPException(status_code=409, detail="This appointment has already been reviewed")

        review = Review(
            appointment_id=appointment.id,
            patient_id=patient.id,
            doctor_id=appointment.doctor_id,
            rating=data.rating,
            comment=data.comment,
        )
        self.db.add(review)
        self.db.flush()
        self.recalculate_doctor_rating(appointment.doctor_id)
        self.db.commit()
        logger.info(f"⭐ Review {review.id} ({data.rating}/5) for doctor {appointment.doctor_id}")
        return serialize_review(self.repo.get_review(self.db, review.id))

    def get_review(self, review_id: int) -> dict:
        review = self.repo.get_review(self.db, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")
        return serialize_review(review)

    def get_doctor_reviews(
        self,
        doctor_id: int,
        rating: Optional[int] = None,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        has_comment: Optional[bool] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        if not self.db.query(DoctorProfile.id).filter(DoctorProfile.id == doctor_id).first():
            raise HTTPException(status_code=404, detail="Doctor not found")
        query = self.repo.filtered_query(
            self.db,
            doctor_id=doctor_id,
            rating=rating,
            min_rating=min_rating,
            max_rating=max_rating,
            date_from=date_from,
            date_to=date_to,
            has_comment=has_comment,
        )
        return self._page(query, page, limit)

    def get_patient_reviews(self, user: User, page: int = 1, limit: int = 10) -> dict:
        patient = get_patient_profile_or_403(user)
        return self._page(self.repo.filtered_query(self.db, patient_id=patient.id), page, limit)

    def get_doctor_review_stats(self, doctor_id: int) -> dict:
        if not self.db.query(DoctorProfile.id).filter(DoctorProfile.id == doctor_id).first():
            raise HTTPException(status_code=404, detail="Doctor not found")
        counts = self.repo.rating_counts(self.db, doctor_id)
        total = sum(counts.values())
        average = sum(rating * count for rating, count in counts.items()) / total if total else 0.0
        return {
            "doctor_id": doctor_id,
            "total_reviews": total,
            "average_rating": round(average, 2),
            "rating_distribution": {star: counts.get(star, 0) for star in range(1, 6)},
        }

    def get_all_reviews(self, page: int = 1, limit: int = 10, **filters) -> dict:
        return self._page(self.repo.filtered_query(self.db, **filters), page, limit)

    def delete_review(self, review_id: int, admin: User) -> dict:
        review = self.repo.get_review(self.db, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")

        doctor_id = review.doctor_id
        log_admin_activity(
            self.db, admin.id, "delete_review", "review", review.id, {"doctor_id": doctor_id, "rating": review.rating}
        )
        self.db.delete(review)
        self.db.flush()
        self.recalculate_doctor_rating(doctor_id)
        self.db.commit()
        return {"message": "Review deleted successfully"}
