"""Doctor router - search, public profiles, verification and maps lookups"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import User, UserRole
from ...rate_limiter import create_rate_limiter
from ...shared.pagination import Page
from .maps_service import MapsServiceError, maps_service
from .schemas import (
    DistanceResponse,
    DoctorPublicResponse,
    DoctorVerificationRequest,
    DoctorVerificationResponse,
    GeocodeResponse,
    NearbyProvider,
    ReverseGeocodeResponse,
)
from .service import DEFAULT_RADIUS_KM, DoctorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])
maps_router = APIRouter(prefix="/maps", tags=["Maps"])

rate_limit_search = create_rate_limiter(limit=60, window_seconds=60, key_prefix="doctor_search")
rate_limit_maps = create_rate_limiter(limit=30, window_seconds=60, key_prefix="maps_lookup")


def get_doctor_service(db: Session = Depends(get_db)) -> DoctorService:
    """Dependency injection for DoctorService"""
    return DoctorService(db)


# ============================================================================
# SEARCH
# ============================================================================


@router.get("", response_model=Page[DoctorPublicResponse])
async def search_doctors(
    name: Optional[str] = Query(None),
    specialization: Optional[str] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    max_consultation_fee: Optional[float] = Query(None, gt=0),
    location: Optional[str] = Query(None),
    is_accepting_patients: bool = Query(True),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(DEFAULT_RADIUS_KM, gt=0),
    sort_by: str = Query("rating", pattern="^(name|rating|experience|fee)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    service: DoctorService = Depends(get_doctor_service),
    _: None = Depends(rate_limit_search),
):
    """Search verified doctors; passing latitude and longitude orders results by distance"""
    return service.search_doctors(
        name=name,
        specialization=specialization,
        min_rating=min_rating,
        max_consultation_fee=max_consultation_fee,
        location=location,
        is_accepting_patients=is_accepting_patients,
        latitude=latitude,
        longitude=longitude,
        radius_km=radius_km,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


# ============================================================================
# VERIFICATION (ADMIN)
# ============================================================================


@router.get("/pending-verification", response_model=list[DoctorVerificationResponse])
async def get_doctors_pending_verification(
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: DoctorService = Depends(get_doctor_service),
):
    return service.get_doctors_pending_verification()


@router.post("/{doctor_id}/verify", response_model=DoctorPublicResponse)
async def verify_doctor_license(
    doctor_id: int,
    data: DoctorVerificationRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: DoctorService = Depends(get_doctor_service),
):
    return await service.verify_doctor_license(doctor_id, data, current_user)


@router.get("/{doctor_id}", response_model=DoctorPublicResponse)
async def get_doctor(doctor_id: int, service: DoctorService = Depends(get_doctor_service)):
    return service.get_doctor_by_id(doctor_id)


# ============================================================================
# MAPS
# ============================================================================


def _maps_error(e: MapsServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


@maps_router.get("/nearby-providers", response_model=list[NearbyProvider])
async def search_nearby_providers(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: int = Query(10000, ge=100, le=50000),
    type_filter: Optional[str] = Query(None, pattern="^(hospital|clinic|doctor)$"),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_maps),
):
    """Hospitals, clinics and doctors near a point (radius in meters)"""
    try:
        return await maps_service.search_nearby_providers(latitude, longitude, radius, type_filter)
    except MapsServiceError as e:
        raise _maps_error(e) from e


@maps_router.get("/geocode", response_model=GeocodeResponse)
async def geocode_address(
    address: str = Query(..., min_length=3, max_length=500),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_maps),
):
    try:
        result = await maps_service.geocode_address(address)
    except MapsServiceError as e:
        raise _maps_error(e) from e
    if not result:
        raise HTTPException(status_code=404, detail="Address not found")
    return result


@maps_router.get("/reverse-geocode", response_model=ReverseGeocodeResponse)
async def reverse_geocode(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_maps),
):
    try:
        return {"address": await maps_service.reverse_geocode(latitude, longitude)}
    except MapsServiceError as e:
        raise _maps_error(e) from e


@maps_router.get("/distance", response_model=DistanceResponse)
async def calculate_distance(
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lng: float = Query(..., ge=-180, le=180),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lng: float = Query(..., ge=-180, le=180),
    current_user: User = Depends(get_current_user),
    _: None = Depends(rate_limit_maps),
):
    """Driving distance in km; -1 when Google cannot route between the points"""
    if not maps_service.is_configured():
        raise HTTPException(status_code=503, detail="Maps service is not configured")
    distance = await maps_service.calculate_distance_matrix(origin_lat, origin_lng, dest_lat, dest_lng)
    return {"distance_km": distance}
