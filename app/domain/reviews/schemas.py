"""Review schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...security_utils import sanitize_text


class ReviewCreate(BaseModel):
    appointment_id: int
    rating: int
    comment: Optional[str] = None

    @field_validator("rating", mode="before")
    @classmethod
    def validate_rating(cls, v):
        if isinstance(v, bool) or not isinstance(v, int) or not 1 <= v <= 5:
            raise ValueError("Rating must be a whole number between 1 and 5")
        return v

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v):
        if v is None:
            return v
        v = sanitize_text(v)
        if len(v) > 1000:
            raise ValueError("Comment must be at most 1000 characters")
        return v or None


class ReviewResponse(BaseModel):
    id: int
    appointment_id: int
    patient_id: int
    doctor_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None


class ReviewStats(BaseModel):
    doctor_id: int
    total_reviews: int
    average_rating: float
    rating_distribution: dict[int, int]
