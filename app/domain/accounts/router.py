"""Account router - registration, authentication and profiles"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User, UserRole
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AdminProfileUpdate,
    AdminRegister,
    AuthResponse,
    DoctorProfileUpdate,
    DoctorRegister,
    EmailVerificationRequest,
    LoginRequest,
    PasswordUpdate,
    PatientProfileUpdate,
    PatientRegister,
    ProfilePictureResponse,
    ProfileResponse,
    RefreshTokenRequest,
    TokenResponse,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
profile_router = APIRouter(prefix="/profile", tags=["Profile"])

rate_limit_register = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="register")
rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")
rate_limit_refresh = create_rate_limiter(limit=30, window_seconds=300, key_prefix="token_refresh")


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db)


# ============================================================================
# REGISTRATION
# ============================================================================


@router.post("/register/patient", response_model=AuthResponse, status_code=201)
async def register_patient(
    data: PatientRegister,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_register),
):
    return await service.register_patient(data)


@router.post("/register/doctor", response_model=AuthResponse, status_code=201)
async def register_doctor(
    data: DoctorRegister,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_register),
):
    """Register a doctor; the profile stays hidden from search until an admin verifies the license"""
    return await service.register_doctor(data)


@router.post("/register/admin", response_model=AuthResponse, status_code=201)
async def register_admin(
    data: AdminRegister,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: AccountService = Depends(get_account_service),
):
    return await service.register_admin(data, current_user)


# ============================================================================
# SESSION
# ============================================================================


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_login),
):
    return service.login(data.email, data.password)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    data: RefreshTokenRequest,
    service: AccountService = Depends(get_account_service),
    _: None = Depends(rate_limit_refresh),
):
    return service.refresh_token(data.refresh_token)


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards them"""
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return service.get_profile(current_user)


# ============================================================================
# ACCOUNT SECURITY
# ============================================================================


@router.put("/password")
async def update_password(
    data: PasswordUpdate,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return service.update_password(current_user, data)


@router.post("/verify-email")
async def verify_email(
    data: EmailVerificationRequest,
    service: AccountService = Depends(get_account_service),
):
    return service.verify_email(data.token)


@router.post("/resend-verification")
async def resend_verification(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return await service.resend_verification(current_user)


@router.post("/deactivate")
async def deactivate_account(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return service.deactivate_account(current_user)


# ============================================================================
# PROFILES
# ============================================================================


@profile_router.put("/patient")
async def update_patient_profile(
    data: PatientProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return service.update_patient_profile(current_user, data)


@profile_router.put("/doctor")
async def update_doctor_profile(
    data: DoctorProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return await service.update_doctor_profile(current_user, data)


@profile_router.put("/admin")
async def update_admin_profile(
    data: AdminProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return service.update_admin_profile(current_user, data)


@profile_router.post("/doctor/picture", response_model=ProfilePictureResponse)
async def upload_profile_picture(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return await service.upload_profile_picture(current_user, file)
