"""Doctor domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...security_utils import sanitize_text


class DoctorPublicResponse(BaseModel):
    id: int
    name: str
    profile_picture: Optional[str] = None
    qualifications: list[str] = []
    years_of_experience: int
    specializations: list[str] = []
    phone: str
    clinic_name: str
    clinic_address: str
    clinic_latitude: Optional[float] = None
    clinic_longitude: Optional[float] = None
    consultation_fee: float
    is_accepting_patients: bool
    license_verified: bool
    rating: float
    total_reviews: int
    created_at: Optional[datetime] = None
    distance_km: Optional[float] = None

    class Config:
        from_attributes = True


class DoctorVerificationResponse(DoctorPublicResponse):
    medical_license_number: str
    email: Optional[str] = None


class DoctorVerificationRequest(BaseModel):
    approve: bool
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v is None:
            return v
        v = sanitize_text(v)
        if len(v) > 1000:
            raise ValueError("Notes must be at most 1000 characters")
        return v or None


class NearbyProvider(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: float
    longitude: float
    rating: Optional[float] = None
    place_id: Optional[str] = None
    distance_km: float
    provider_type: str


class GeocodeResponse(BaseModel):
    latitude: float
    longitude: float
    formatted_address: Optional[str] = None


class ReverseGeocodeResponse(BaseModel):
    address: Optional[str] = None


class DistanceResponse(BaseModel):
    distance_km: float
