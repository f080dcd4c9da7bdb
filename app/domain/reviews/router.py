"""Review router"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import User, UserRole
from ...shared.pagination import Page
from .schemas import ReviewCreate, ReviewResponse, ReviewStats
from .service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Dependency injection for ReviewService"""
    return ReviewService(db)


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    data: ReviewCreate,
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    service: ReviewService = Depends(get_review_service),
):
    """Review a completed appointment (one review per appointment)"""
    return service.create_review(current_user, data)


@router.get("/me", response_model=Page[ReviewResponse])
async def get_my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    service: ReviewService = Depends(get_review_service),
):
    return service.get_patient_reviews(current_user, page, limit)


@router.get("/doctor/{doctor_id}", response_model=Page[ReviewResponse])
async def get_doctor_reviews(
    doctor_id: int,
    rating: Optional[int] = Query(None, ge=1, le=5),
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    max_rating: Optional[int] = Query(None, ge=1, le=5),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    has_comment: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    service: ReviewService = Depends(get_review_service),
):
    return service.get_doctor_reviews(
        doctor_id, rating, min_rating, max_rating, date_from, date_to, has_comment, page, limit
    )


@router.get("/doctor/{doctor_id}/stats", response_model=ReviewStats)
async def get_doctor_review_stats(doctor_id: int, service: ReviewService = Depends(get_review_service)):
    return service.get_doctor_review_stats(doctor_id)


# ============================================================================
# ADMIN
# ============================================================================


@router.get("", response_model=Page[ReviewResponse])
async def get_all_reviews(
    doctor_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    rating: Optional[int] = Query(None, ge=1, le=5),
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    max_rating: Optional[int] = Query(None, ge=1, le=5),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    has_comment: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: ReviewService = Depends(get_review_service),
):
    return service.get_all_reviews(
        page,
        limit,
        doctor_id=doctor_id,
        patient_id=patient_id,
        rating=rating,
        min_rating=min_rating,
        max_rating=max_rating,
        date_from=date_from,
        date_to=date_to,
        has_comment=has_comment,
    )


@router.get("/{review_id}", response_model=ReviewResponse)
async def get_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    return service.get_review(review_id)


@router.delete("/{review_id}")
async def delete_review(
    review_id: int,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: ReviewService = Depends(get_review_service),
):
    return service.delete_review(review_id, current_user)
