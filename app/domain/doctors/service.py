"""Doctor service - search, public profiles and license verification"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import get_doctor_profile_cached, invalidate_doctor_profile_cache, set_doctor_profile_cached
from ...models import DoctorProfile, NotificationType, User
from ...shared.pagination import build_page, normalize_paging, paginate_query
from ..admin.activity import log_admin_activity
from ..notifications.service import NotificationService
from .geo import haversine_km
from .repository import DoctorRepository
from .schemas import DoctorPublicResponse, DoctorVerificationRequest

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 50


def serialize_doctor(doctor: DoctorProfile, distance_km: Optional[float] = None) -> dict:
    data = DoctorPublicResponse.model_validate(doctor).model_dump()
    data["distance_km"] = distance_km
    return data


def has_specialization(doctor: DoctorProfile, specialization: str) -> bool:
    wanted = specialization.strip().lower()
    return any(wanted == (s or "").strip().lower() for s in doctor.specializations or [])


class DoctorService:
    """Service layer for doctor discovery and verification"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DoctorRepository()

    def search_doctors(
        self,
        name: Optional[str] = None,
        specialization: Optional[str] = None,
        min_rating: Optional[float] = None,
        max_consultation_fee: Optional[float] = None,
        location: Optional[str] = None,
        is_accepting_patients: bool = True,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: float = DEFAULT_RADIUS_KM,
        sort_by: str = "rating",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        """
        Search verified doctors.

        Column filters run in SQL. Specialization membership and distance are
        evaluated per doctor; with coordinates the whole match set is ordered
        by distance before the page is cut.
        """
        page, limit = normalize_paging(page, limit)
        query = self.repo.search_query(
            self.db,
            name=name,
            min_rating=min_rating,
            max_consultation_fee=max_consultation_fee,
            location=location,
            is_accepting_patients=is_accepting_patients,
            sort_by=sort_by,
            sort_order=sort_order,
        )

        use_distance = latitude is not None and longitude is not None
        if not specialization and not use_distance:
            doctors, total = paginate_query(query, page, limit)
            return build_page([serialize_doctor(d) for d in doctors], total, page, limit)

        doctors = query.all()
        if specialization:
            doctors = [d for d in doctors if has_specialization(d, specialization)]

        results = []
        for doctor in doctors:
            distance = None
            if use_distance:
                if doctor.clinic_latitude is None or doctor.clinic_longitude is None:
                    continue
                distance = haversine_km(latitude, longitude, doctor.clinic_latitude, doctor.clinic_longitude)
                if distance > radius_km:
                    continue
            results.append((doctor, distance))

        if use_distance:
            # Stable sort keeps the requested column order for equal distances
            results.sort(key=lambda item: item[1])

        start = (page - 1) * limit
        page_items = [serialize_doctor(d, dist) for d, dist in results[start : start + limit]]
        return build_page(page_items, len(results), page, limit)

    def get_doctor_by_id(self, doctor_id: int) -> dict:
        cached = get_doctor_profile_cached(doctor_id)
        if cached:
            return cached

        doctor = self.repo.get_doctor(self.db, doctor_id)
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found")
        profile = serialize_doctor(doctor)
        set_doctor_profile_cached(doctor_id, profile)
        return profile

    def get_doctors_pending_verification(self) -> list[dict]:
        return [
            {
                **serialize_doctor(d),
                "medical_license_number": d.medical_license_number,
                "email": d.user.email if d.user else None,
            }
            for d in self.repo.pending_verification(self.db)
        ]

    async def verify_doctor_license(
        self, doctor_id: int, data: DoctorVerificationRequest, admin: User
    ) -> DoctorProfile:
        doctor = self.repo.get_doctor(self.db, doctor_id)
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found")

        doctor.license_verified = data.approve
        log_admin_activity(
            self.db,
            admin.id,
            "verify_doctor" if data.approve else "reject_doctor",
            "doctor",
            doctor.id,
            {"notes": data.notes, "license": doctor.medical_license_number},
        )
        self.db.commit()
        self.db.refresh(doctor)
        invalidate_doctor_profile_cache(doctor.id)
        logger.info(f"🩺 Doctor {doctor.id} license {'approved' if data.approve else 'rejected'} by admin {admin.id}")

        if data.approve:
            notification_type = NotificationType.DOCTOR_VERIFIED
            title = "License verified"
            message = "Your medical license has been verified. Your profile is now visible to patients."
        else:
            notification_type = NotificationType.DOCTOR_REJECTED
            title = "License verification unsuccessful"
            message = "We could not verify your medical license."
        if data.notes:
            message += f" Notes: {data.notes}"

        try:
            await NotificationService(self.db).create_notification(
                doctor.user_id, notification_type, title, message, {"doctor_id": doctor.id}
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to notify doctor {doctor.id} about verification: {e}")
        return doctor
