"""Meeting router - video consultation endpoints"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...config import ZOOM_WEBHOOK_SECRET_TOKEN
from ...database import get_db
from ...models import MeetingStatus, User, UserRole
from ...webhook_security import verify_zoom_webhook, zoom_url_validation_response
from ..appointments.repository import AppointmentRepository
from .schemas import MeetingResponse, MeetingStats, MeetingUpdate
from .service import MeetingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["Meetings"])


def get_meeting_service(db: Session = Depends(get_db)) -> MeetingService:
    """Dependency injection for MeetingService"""
    return MeetingService(db)


def _load_appointment(db: Session, appointment_id: int):
    appointment = AppointmentRepository.get_appointment(db, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/stats", response_model=MeetingStats)
async def get_meeting_stats(
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: MeetingService = Depends(get_meeting_service),
):
    return service.get_meeting_stats()


# ============================================================================
# APPOINTMENT MEETINGS
# ============================================================================


@router.post("/appointments/{appointment_id}", response_model=MeetingResponse, status_code=201)
async def create_meeting(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: MeetingService = Depends(get_meeting_service),
):
    """Create the Zoom meeting for a confirmed online appointment"""
    return await service.create_meeting(_load_appointment(db, appointment_id), current_user)


@router.get("/appointments/{appointment_id}", response_model=MeetingResponse)
async def get_meeting_by_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: MeetingService = Depends(get_meeting_service),
):
    """Get the meeting for an appointment; the host link is only shown to the doctor"""
    return service.get_meeting_by_appointment(_load_appointment(db, appointment_id), current_user)


# ============================================================================
# MEETING LIFECYCLE
# ============================================================================


@router.patch("/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: int,
    data: MeetingUpdate,
    current_user: User = Depends(get_current_user),
    service: MeetingService = Depends(get_meeting_service),
):
    return await service.update_meeting(meeting_id, current_user, data)


@router.post("/{meeting_id}/cancel", response_model=MeetingResponse)
async def cancel_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    service: MeetingService = Depends(get_meeting_service),
):
    return await service.cancel_meeting(meeting_id, current_user)


@router.post("/{meeting_id}/start", response_model=MeetingResponse)
async def start_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    service: MeetingService = Depends(get_meeting_service),
):
    return service.start_meeting(meeting_id, current_user)


@router.post("/{meeting_id}/end", response_model=MeetingResponse)
async def end_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    service: MeetingService = Depends(get_meeting_service),
):
    return service.end_meeting(meeting_id, current_user)


# ============================================================================
# ZOOM WEBHOOK
# ============================================================================

webhooks_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

MEETING_EVENT_STATUSES = {
    "meeting.started": MeetingStatus.STARTED,
    "meeting.ended": MeetingStatus.ENDED,
}


@webhooks_router.post("/zoom")
async def handle_zoom_webhook(
    request: Request,
    service: MeetingService = Depends(get_meeting_service),
):
    """
    Zoom event notifications.

    endpoint.url_validation is answered with the HMAC of the plain token; all
    other events must carry a valid x-zm-signature.
    """
    raw_body = await request.body()
    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    event_type = event.get("event")
    payload = event.get("payload") or {}

    if event_type == "endpoint.url_validation":
        if not ZOOM_WEBHOOK_SECRET_TOKEN:
            raise HTTPException(status_code=500, detail="Webhook not configured")
        logger.info("🔗 Zoom endpoint URL validation")
        return zoom_url_validation_response(ZOOM_WEBHOOK_SECRET_TOKEN, payload.get("plainToken", ""))

    if not ZOOM_WEBHOOK_SECRET_TOKEN:
        logger.error("❌ ZOOM_WEBHOOK_SECRET_TOKEN not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    await verify_zoom_webhook(request, ZOOM_WEBHOOK_SECRET_TOKEN, raise_on_failure=True)

    meeting_object = payload.get("object") or {}
    zoom_meeting_id = meeting_object.get("id")

    if event_type in MEETING_EVENT_STATUSES:
        if zoom_meeting_id is not None:
            service.update_status_by_zoom_id(str(zoom_meeting_id), MEETING_EVENT_STATUSES[event_type])
    elif event_type in ("meeting.participant_joined", "meeting.participant_left"):
        participant = (meeting_object.get("participant") or {}).get("user_name", "unknown")
        logger.info(f"👤 Zoom {event_type} for meeting {zoom_meeting_id}: {participant}")
    else:
        logger.info(f"ℹ️ Unhandled Zoom event {event_type}")

    return {"status": "ok"}
