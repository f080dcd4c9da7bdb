"""Account repository - user and profile lookups"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import DoctorProfile, User


class AccountRepository:
    """Repository for user account database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return (
            db.query(User)
            .options(
                joinedload(User.patient_profile),
                joinedload(User.doctor_profile),
                joinedload(User.admin_profile),
            )
            .filter(User.id == user_id)
            .first()
        )

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def get_doctor_by_license(db: Session, license_number: str) -> Optional[DoctorProfile]:
        return (
            db.query(DoctorProfile)
            .filter(DoctorProfile.medical_license_number == license_number)
            .first()
        )
