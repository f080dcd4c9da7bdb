import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .models import User, UserRole
from .security_utils import ACCESS_TOKEN_TYPE, TokenError, decode_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from a bearer access token"""

    if not credentials:
        logger.error("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials

    # Basic token format validation before processing
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received: token length {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    try:
        payload = decode_jwt_token(token, expected_type=ACCESS_TOKEN_TYPE)
    except TokenError as e:
        logger.warning(f"⚠️ Authentication failed: {e}")
        raise HTTPException(status_code=401, detail=str(e)) from e

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    user = (
        db.query(User)
        .options(
            joinedload(User.patient_profile),
            joinedload(User.doctor_profile),
            joinedload(User.admin_profile),
        )
        .filter(User.id == user_id)
        .first()
    )

    if not user:
        logger.warning(f"⚠️ Token for unknown user {user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        logger.warning(f"⚠️ Deactivated user {user.id} attempted access")
        raise HTTPException(status_code=403, detail="Account has been deactivated")

    logger.debug(f"✅ User authenticated: {user.id} ({user.role.value})")
    return user


def require_roles(*roles: UserRole):
    """
    Create a dependency that only lets the given roles through

    Example usage:
        @router.get("/admin/analytics")
        async def analytics(admin: User = Depends(require_roles(UserRole.ADMIN))):
            ...
    """

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            logger.warning(f"⚠️ User {user.id} ({user.role.value}) denied - requires {allowed}")
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return role_checker


def get_patient_profile_or_403(user: User):
    if user.role != UserRole.PATIENT or not user.patient_profile:
        raise HTTPException(status_code=403, detail="Patient profile required")
    return user.patient_profile


def get_doctor_profile_or_403(user: User):
    if user.role != UserRole.DOCTOR or not user.doctor_profile:
        raise HTTPException(status_code=403, detail="Doctor profile required")
    return user.doctor_profile
