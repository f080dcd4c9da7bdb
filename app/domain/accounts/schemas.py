"""Account domain schemas - registration, login and profiles"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...models import UserRole
from ...shared.validators import validate_email, validate_phone, validate_string_list
from ..doctors.schemas import DoctorPublicResponse

GENDERS = ("male", "female", "other")


def _validate_name(v: str) -> str:
    v = (v or "").strip()
    if not 2 <= len(v) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    return v


def _validate_address(v: str, field: str = "Address") -> str:
    v = (v or "").strip()
    if not 5 <= len(v) <= 500:
        raise ValueError(f"{field} must be between 5 and 500 characters")
    return v


def _validate_age(v: int) -> int:
    if not 1 <= v <= 120:
        raise ValueError("Age must be between 1 and 120")
    return v


def _validate_gender(v: str) -> str:
    v = (v or "").strip().lower()
    if v not in GENDERS:
        raise ValueError("Gender must be one of: male, female, other")
    return v


def _validate_experience(v: int) -> int:
    if not 0 <= v <= 60:
        raise ValueError("Years of experience must be between 0 and 60")
    return v


def _validate_fee(v: float) -> float:
    if v <= 0:
        raise ValueError("Consultation fee must be greater than 0")
    return round(v, 2)


class AccountBase(BaseModel):
    email: str
    password: str
    name: str
    phone: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _validate_name(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class PatientRegister(AccountBase):
    age: int
    gender: str
    address: str

    @field_validator("age")
    @classmethod
    def check_age(cls, v):
        return _validate_age(v)

    @field_validator("gender")
    @classmethod
    def check_gender(cls, v):
        return _validate_gender(v)

    @field_validator("address")
    @classmethod
    def check_address(cls, v):
        return _validate_address(v)


class DoctorRegister(AccountBase):
    medical_license_number: str
    qualifications: list[str]
    years_of_experience: int
    specializations: list[str]
    clinic_name: str
    clinic_address: str
    consultation_fee: float

    @field_validator("medical_license_number")
    @classmethod
    def check_license(cls, v):
        v = (v or "").strip().upper()
        if not 5 <= len(v) <= 50:
            raise ValueError("Medical license number must be between 5 and 50 characters")
        return v

    @field_validator("qualifications")
    @classmethod
    def check_qualifications(cls, v):
        return validate_string_list(v, "qualification")

    @field_validator("specializations")
    @classmethod
    def check_specializations(cls, v):
        return validate_string_list(v, "specialization")

    @field_validator("years_of_experience")
    @classmethod
    def check_experience(cls, v):
        return _validate_experience(v)

    @field_validator("clinic_name")
    @classmethod
    def check_clinic_name(cls, v):
        v = (v or "").strip()
        if not 2 <= len(v) <= 200:
            raise ValueError("Clinic name must be between 2 and 200 characters")
        return v

    @field_validator("clinic_address")
    @classmethod
    def check_clinic_address(cls, v):
        return _validate_address(v, "Clinic address")

    @field_validator("consultation_fee")
    @classmethod
    def check_fee(cls, v):
        return _validate_fee(v)


class AdminRegister(AccountBase):
    pass


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return (v or "").strip().lower()


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str


class EmailVerificationRequest(BaseModel):
    token: str


class PatientProfileUpdate(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _validate_name(v) if v is not None else v

    @field_validator("age")
    @classmethod
    def check_age(cls, v):
        return _validate_age(v) if v is not None else v

    @field_validator("gender")
    @classmethod
    def check_gender(cls, v):
        return _validate_gender(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("address")
    @classmethod
    def check_address(cls, v):
        return _validate_address(v) if v is not None else v


class DoctorProfileUpdate(BaseModel):
    name: Optional[str] = None
    qualifications: Optional[list[str]] = None
    years_of_experience: Optional[int] = None
    specializations: Optional[list[str]] = None
    phone: Optional[str] = None
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    consultation_fee: Optional[float] = None
    is_accepting_patients: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _validate_name(v) if v is not None else v

    @field_validator("qualifications")
    @classmethod
    def check_qualifications(cls, v):
        return validate_string_list(v, "qualification") if v is not None else v

    @field_validator("specializations")
    @classmethod
    def check_specializations(cls, v):
        return validate_string_list(v, "specialization") if v is not None else v

    @field_validator("years_of_experience")
    @classmethod
    def check_experience(cls, v):
        return _validate_experience(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("clinic_address")
    @classmethod
    def check_clinic_address(cls, v):
        return _validate_address(v, "Clinic address") if v is not None else v

    @field_validator("consultation_fee")
    @classmethod
    def check_fee(cls, v):
        return _validate_fee(v) if v is not None else v


class AdminProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _validate_name(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


# ============================================================================
# RESPONSES
# ============================================================================


class UserResponse(BaseModel):
    id: int
    email: str
    role: UserRole
    is_verified: bool
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PatientProfileResponse(BaseModel):
    id: int
    name: str
    age: int
    gender: str
    phone: str
    address: str

    class Config:
        from_attributes = True


class DoctorProfileResponse(DoctorPublicResponse):
    medical_license_number: str


class AdminProfileResponse(BaseModel):
    id: int
    name: str
    phone: str

    class Config:
        from_attributes = True


class ProfileResponse(BaseModel):
    user: UserResponse
    profile: Optional[Any] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthResponse(TokenResponse):
    user: UserResponse
    profile: Optional[Any] = None


class ProfilePictureResponse(BaseModel):
    profile_picture: str
    url: Optional[str] = None
