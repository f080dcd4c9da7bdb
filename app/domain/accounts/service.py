"""Account service - registration, authentication and profile management"""

import logging
import os
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ... import storage
from ...cache import invalidate_doctor_profile_cache
from ...email_service import EmailError, send_verification_email
from ...models import AdminProfile, DoctorProfile, NotificationPreference, PatientProfile, User, UserRole
from ...security_utils import (
    REFRESH_TOKEN_TYPE,
    TokenError,
    check_password_strength,
    create_token_pair,
    decode_jwt_token,
    generate_timed_token,
    hash_password_bcrypt,
    mask_sensitive_data,
    verify_password_bcrypt,
    verify_timed_token,
)
from ..admin.activity import log_admin_activity
from ..doctors.maps_service import MapsServiceError, maps_service
from .repository import AccountRepository
from .schemas import (
    AdminProfileResponse,
    AdminProfileUpdate,
    AdminRegister,
    DoctorProfileResponse,
    DoctorProfileUpdate,
    DoctorRegister,
    PatientProfileResponse,
    PatientProfileUpdate,
    PatientRegister,
    PasswordUpdate,
    UserResponse,
)

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION_SALT = "email-verification"
EMAIL_VERIFICATION_MAX_AGE = 24 * 3600

PROFILE_PICTURE_TYPES = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}
MAX_PROFILE_PICTURE_SIZE = 5 * 1024 * 1024


def serialize_profile(user: User) -> Optional[dict]:
    profile = user.profile
    if profile is None:
        return None
    if user.role == UserRole.PATIENT:
        return PatientProfileResponse.model_validate(profile).model_dump()
    if user.role == UserRole.DOCTOR:
        return DoctorProfileResponse.model_validate(profile).model_dump()
    return AdminProfileResponse.model_validate(profile).model_dump()


def _ensure_strong_password(password: str) -> None:
    strength = check_password_strength(password)
    if not strength["is_valid"]:
        raise HTTPException(status_code=400, detail="; ".join(strength["errors"]))


class AccountService:
    """Service layer for accounts and profiles"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AccountRepository()

    def _auth_response(self, user: User) -> dict:
        return {
            **create_token_pair(user.id, user.email, user.role.value),
            "user": UserResponse.model_validate(user).model_dump(),
            "profile": serialize_profile(user),
        }

    def _create_user(self, email: str, password: str, role: UserRole) -> User:
        if self.repo.get_user_by_email(self.db, email):
            raise HTTPException(status_code=409, detail="User with this email already exists")
        _ensure_strong_password(password)

        user = User(email=email, hashed_password=hash_password_bcrypt(password), role=role)
        self.db.add(user)
        self.db.flush()
        self.db.add(NotificationPreference(user_id=user.id))
        return user

    async def _send_verification(self, user: User) -> None:
        token = generate_timed_token({"user_id": user.id, "email": user.email}, salt=EMAIL_VERIFICATION_SALT)
        try:
            await send_verification_email(user.email, user.display_name, token)
        except EmailError as e:
            logger.warning(f"⚠️ Verification email not sent to {mask_sensitive_data(user.email)}: {e}")

    async def _geocode_clinic(self, doctor: DoctorProfile) -> None:
        if not maps_service.is_configured():
            return
        try:
            location = await maps_service.geocode_address(doctor.clinic_address)
        except MapsServiceError as e:
            logger.warning(f"⚠️ Could not geocode clinic for doctor {doctor.id}: {e}")
            return
        if location:
            doctor.clinic_latitude = location["latitude"]
            doctor.clinic_longitude = location["longitude"]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_patient(self, data: PatientRegister) -> dict:
        user = self._create_user(data.email, data.password, UserRole.PATIENT)
        self.db.add(
            PatientProfile(
                user_id=user.id,
                name=data.name,
                age=data.age,
                gender=data.gender,
                phone=data.phone,
                address=data.address,
            )
        )
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ Patient registered: user {user.id}")

        await self._send_verification(user)
        return self._auth_response(user)

    async def register_doctor(self, data: DoctorRegister) -> dict:
        if self.repo.get_doctor_by_license(self.db, data.medical_license_number):
            raise HTTPException(status_code=409, detail="Medical license number is already registered")
        user = self._create_user(data.email, data.password, UserRole.DOCTOR)

        doctor = DoctorProfile(
            user_id=user.id,
            name=data.name,
            medical_license_number=data.medical_license_number,
            qualifications=data.qualifications,
            years_of_experience=data.years_of_experience,
            specializations=data.specializations,
            phone=data.phone,
            clinic_name=data.clinic_name,
            clinic_address=data.clinic_address,
            consultation_fee=data.consultation_fee,
        )
        self.db.add(doctor)
        await self._geocode_clinic(doctor)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ Doctor registered: user {user.id}, awaiting license verification")

        await self._send_verification(user)
        return self._auth_response(user)

    async def register_admin(self, data: AdminRegister, created_by: User) -> dict:
        user = self._create_user(data.email, data.password, UserRole.ADMIN)
        # Admins are created by admins; their email is trusted
        user.is_verified = True
        self.db.add(AdminProfile(user_id=user.id, name=data.name, phone=data.phone))
        log_admin_activity(self.db, created_by.id, "create_admin", "user", user.id, {"email": user.email})
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"✅ Admin {user.id} created by admin {created_by.id}")
        return self._auth_response(user)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        user = self.repo.get_user_by_email(self.db, email)
        if not user or not verify_password_bcrypt(password, user.hashed_password):
            logger.warning(f"⚠️ Failed login for {mask_sensitive_data(email)}")
            raise HTTPException(status_code=401, detail="Invalid email or password")
        if not user.is_active:
            raise HTTPException(status_code=403, detail="Account has been deactivated")

        logger.info(f"🔐 User {user.id} logged in")
        return self._auth_response(user)

    def refresh_token(self, refresh_token: str) -> dict:
        try:
            payload = decode_jwt_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
            user_id = int(payload["sub"])
        except (TokenError, TypeError, ValueError) as e:
            raise HTTPException(status_code=401, detail="Invalid or expired refresh token") from e

        user = self.repo.get_user(self.db, user_id)
        if not user or not user.is_active:
            raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
        return create_token_pair(user.id, user.email, user.role.value)

    def get_profile(self, user: User) -> dict:
        return {"user": UserResponse.model_validate(user).model_dump(), "profile": serialize_profile(user)}

    def update_password(self, user: User, data: PasswordUpdate) -> dict:
        if not verify_password_bcrypt(data.current_password, user.hashed_password):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        _ensure_strong_password(data.new_password)
        if verify_password_bcrypt(data.new_password, user.hashed_password):
            raise HTTPException(status_code=400, detail="New password must be different from the current password")

        user.hashed_password = hash_password_bcrypt(data.new_password)
        self.db.commit()
        logger.info(f"🔑 Password updated for user {user.id}")
        return {"message": "Password updated successfully"}

    def deactivate_account(self, user: User) -> dict:
        user.is_active = False
        self.db.commit()
        if user.doctor_profile:
            invalidate_doctor_profile_cache(user.doctor_profile.id)
        logger.info(f"User {user.id} deactivated their account")
        return {"message": "Account deactivated"}

    def verify_email(self, token: str) -> dict:
        data = verify_timed_token(token, max_age=EMAIL_VERIFICATION_MAX_AGE, salt=EMAIL_VERIFICATION_SALT)
        if not data:
            raise HTTPException(status_code=400, detail="Invalid or expired verification link")

        user = self.repo.get_user(self.db, data.get("user_id"))
        if not user or user.email != data.get("email"):
            raise HTTPException(status_code=400, detail="Invalid or expired verification link")

        if not user.is_verified:
            user.is_verified = True
            self.db.commit()
            logger.info(f"✅ Email verified for user {user.id}")
        return {"message": "Email verified successfully"}

    async def resend_verification(self, user: User) -> dict:
        if user.is_verified:
            raise HTTPException(status_code=400, detail="Email is already verified")
        await self._send_verification(user)
        return {"message": "Verification email sent"}

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def update_patient_profile(self, user: User, data: PatientProfileUpdate) -> dict:
        if user.role != UserRole.PATIENT or not user.patient_profile:
            raise HTTPException(status_code=403, detail="Only patients can update a patient profile")
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user.patient_profile, key, value)
        self.db.commit()
        self.db.refresh(user.patient_profile)
        return serialize_profile(user)

    async def update_doctor_profile(self, user: User, data: DoctorProfileUpdate) -> dict:
        doctor = user.doctor_profile
        if user.role != UserRole.DOCTOR or not doctor:
            raise HTTPException(status_code=403, detail="Only doctors can update a doctor profile")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        address_changed = "clinic_address" in changes and changes["clinic_address"] != doctor.clinic_address
        for key, value in changes.items():
            setattr(doctor, key, value)
        if address_changed:
            await self._geocode_clinic(doctor)

        self.db.commit()
        self.db.refresh(doctor)
        invalidate_doctor_profile_cache(doctor.id)
        return serialize_profile(user)

    def update_admin_profile(self, user: User, data: AdminProfileUpdate) -> dict:
        if user.role != UserRole.ADMIN or not user.admin_profile:
            raise HTTPException(status_code=403, detail="Only admins can update an admin profile")
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user.admin_profile, key, value)
        self.db.commit()
        self.db.refresh(user.admin_profile)
        return serialize_profile(user)

    async def upload_profile_picture(self, user: User, file: UploadFile) -> dict:
        doctor = user.doctor_profile
        if user.role != UserRole.DOCTOR or not doctor:
            raise HTTPException(status_code=403, detail="Only doctors can upload a profile picture")
        if not storage.is_configured():
            raise HTTPException(status_code=503, detail="File storage is not configured")

        content_type = (file.content_type or "").lower()
        if content_type not in PROFILE_PICTURE_TYPES:
            raise HTTPException(status_code=400, detail="Profile picture must be a JPEG, PNG or WebP image")

        contents = await file.read()
        if not contents:
            raise HTTPException(status_code=400, detail="File is empty")
        if len(contents) > MAX_PROFILE_PICTURE_SIZE:
            raise HTTPException(status_code=400, detail="Profile picture must be 5MB or smaller")

        extension = os.path.splitext(file.filename or "")[1].lower() or PROFILE_PICTURE_TYPES[content_type]
        if extension == ".jpeg":
            extension = ".jpg"
        if extension not in PROFILE_PICTURE_TYPES.values():
            extension = PROFILE_PICTURE_TYPES[content_type]

        key = storage.build_object_key("profile-pictures", doctor.id, extension)
        try:
            storage.upload_bytes(key, contents, content_type, inline=True)
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to upload profile picture") from e

        previous = doctor.profile_picture
        doctor.profile_picture = key
        self.db.commit()
        invalidate_doctor_profile_cache(doctor.id)

        if previous:
            try:
                storage.delete_object(previous)
            except storage.StorageError:
                logger.warning(f"⚠️ Old profile picture {previous} was not removed")

        return {"profile_picture": key, "url": storage.generate_presigned_url(key)}
