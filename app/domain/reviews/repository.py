"""Review repository"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Review


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_review(db: Session, review_id: int) -> Optional[Review]:
        return (
            db.query(Review)
            .options(joinedload(Review.patient), joinedload(Review.doctor))
            .filter(Review.id == review_id)
            .first()
        )

    @staticmethod
    def get_by_appointment(db: Session, appointment_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.appointment_id == appointment_id).first()

    @staticmethod
    def filtered_query(
        db: Session,
        doctor_id: Optional[int] = None,
        patient_id: Optional[int] = None,
        rating: Optional[int] = None,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        has_comment: Optional[bool] = None,
    ):
        query = db.query(Review).options(joinedload(Review.patient), joinedload(Review.doctor))
        if doctor_id is not None:
            query = query.filter(Review.doctor_id == doctor_id)
        if patient_id is not None:
            query = query.filter(Review.patient_id == patient_id)
        if rating is not None:
            query = query.filter(Review.rating == rating)
        if min_rating is not None:
            query = query.filter(Review.rating >= min_rating)
        if max_rating is not None:
            query = query.filter(Review.rating <= max_rating)
        if date_from:
            query = query.filter(Review.created_at >= date_from)
        if date_to:
            query = query.filter(Review.created_at <= date_to)
        if has_comment is True:
            query = query.filter(Review.comment.isnot(None), Review.comment != "")
        elif has_comment is False:
            query = query.filter((Review.comment.is_(None)) | (Review.comment == ""))
        return query.order_by(Review.created_at.desc(), Review.id.desc())

    @staticmethod
    def rating_counts(db: Session, doctor_id: Optional[int] = None) -> dict[int, int]:
        query = db.query(Review.rating, func.count(Review.id))
        if doctor_id is not None:
            query = query.filter(Review.doctor_id == doctor_id)
        return {rating: count for rating, count in query.group_by(Review.rating).all()}
