"""Meeting service - video consultations for online appointments"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    MeetingStatus,
    NotificationType,
    User,
    UserRole,
    ZoomMeeting,
)
from ...shared import timeutils
from ..appointments.access import ensure_participant
from ..notifications.service import NotificationService, format_when
from .schemas import MeetingUpdate
from .zoom_service import ZoomAPIError, zoom_service

logger = logging.getLogger(__name__)

MEETING_DURATION_MINUTES = 30
ARCHIVE_AFTER_DAYS = 30


def meeting_topic(appointment: Appointment) -> str:
    return f"Medical Consultation - Dr. {appointment.doctor.name} & {appointment.patient.name}"


class MeetingService:
    """Service layer for Zoom meetings attached to appointments"""

    def __init__(self, db: Session):
        self.db = db

    def _get_by_appointment(self, appointment_id: int) -> Optional[ZoomMeeting]:
        return self.db.query(ZoomMeeting).filter(ZoomMeeting.appointment_id == appointment_id).first()

    def _get_meeting(self, meeting_id: int) -> ZoomMeeting:
        meeting = self.db.query(ZoomMeeting).filter(ZoomMeeting.id == meeting_id).first()
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        return meeting

    async def create_meeting_for_appointment(self, appointment: Appointment) -> ZoomMeeting:
        """Create the Zoom meeting for an online appointment and send the link to both parties"""
        existing = self._get_by_appointment(appointment.id)
        if existing and existing.status != MeetingStatus.CANCELLED:
            return existing

        if not zoom_service.is_available():
            raise HTTPException(status_code=503, detail="Video consultations are not configured")

        try:
            created = await zoom_service.create_meeting(
                topic=meeting_topic(appointment),
                start_time=appointment.scheduled_date_time,
                duration=MEETING_DURATION_MINUTES,
                agenda=f"Medical consultation between Dr. {appointment.doctor.name} and {appointment.patient.name}",
            )
        except ZoomAPIError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        if existing:
            # A cancelled meeting is replaced; appointment_id is unique
            self.db.delete(existing)
            self.db.flush()

        meeting = ZoomMeeting(
            appointment_id=appointment.id,
            zoom_meeting_id=str(created["id"]),
            topic=created.get("topic") or meeting_topic(appointment),
            start_time=appointment.scheduled_date_time,
            duration=created.get("duration") or MEETING_DURATION_MINUTES,
            host_url=created["start_url"],
            join_url=created["join_url"],
            password=created.get("password"),
            status=MeetingStatus.SCHEDULED,
            host_email=appointment.doctor.user.email,
        )
        self.db.add(meeting)
        self.db.commit()
        self.db.refresh(meeting)
        logger.info(f"✅ Meeting {meeting.zoom_meeting_id} stored for appointment {appointment.id}")

        await NotificationService(self.db).notify_appointment(
            appointment,
            NotificationType.MEETING_LINK_READY,
            extra_data={
                "join_url": meeting.join_url,
                "password": meeting.password,
                "start_time": format_when(meeting.start_time),
            },
        )
        return meeting

    async def create_meeting(self, appointment: Appointment, user: User) -> dict:
        """Manually (re)create the meeting for a confirmed online appointment"""
        ensure_participant(appointment, user)
        if user.role == UserRole.PATIENT:
            raise HTTPException(status_code=403, detail="Patients cannot create meetings")
        if appointment.type != AppointmentType.ONLINE:
            raise HTTPException(status_code=400, detail="Meetings are only available for online appointments")
        if appointment.status != AppointmentStatus.CONFIRMED:
            raise HTTPException(status_code=400, detail="Appointment must be confirmed before creating a meeting")
        meeting = await self.create_meeting_for_appointment(appointment)
        return self.serialize(meeting, user)

    def get_meeting_by_appointment(self, appointment: Appointment, user: User) -> dict:
        ensure_participant(appointment, user)
        meeting = self._get_by_appointment(appointment.id)
        if not meeting:
            raise HTTPException(status_code=404, detail="No meeting found for this appointment")
        return self.serialize(meeting, user)

    @staticmethod
    def serialize(meeting: ZoomMeeting, user: User) -> dict:
        data = {
            "id": meeting.id,
            "appointment_id": meeting.appointment_id,
            "zoom_meeting_id": meeting.zoom_meeting_id,
            "topic": meeting.topic,
            "start_time": meeting.start_time,
            "duration": meeting.duration,
            "join_url": meeting.join_url,
            "password": meeting.password,
            "status": meeting.status,
            "host_url": None,
        }
        if user.role in (UserRole.DOCTOR, UserRole.ADMIN):
            data["host_url"] = meeting.host_url
        return data

    async def update_meeting(self, meeting_id: int, user: User, data: MeetingUpdate) -> dict:
        meeting = self._get_meeting(meeting_id)
        ensure_participant(meeting.appointment, user)
        if user.role == UserRole.PATIENT:
            raise HTTPException(status_code=403, detail="Patients cannot modify meetings")
        if meeting.status in (MeetingStatus.ENDED, MeetingStatus.CANCELLED):
            raise HTTPException(status_code=400, detail=f"Cannot update a {meeting.status.value.lower()} meeting")

        changes = data.model_dump(exclude_none=True)
        try:
            await zoom_service.update_meeting(meeting.zoom_meeting_id, **changes)
        except ZoomAPIError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        for key, value in changes.items():
            setattr(meeting, key, value)
        self.db.commit()
        self.db.refresh(meeting)
        return self.serialize(meeting, user)

    async def reschedule_for_appointment(self, appointment: Appointment) -> None:
        """Move an appointment's meeting to its new time"""
        meeting = self._get_by_appointment(appointment.id)
        if not meeting or meeting.status != MeetingStatus.SCHEDULED:
            return
        await zoom_service.update_meeting(meeting.zoom_meeting_id, start_time=appointment.scheduled_date_time)
        meeting.start_time = appointment.scheduled_date_time
        self.db.commit()

    async def cancel_for_appointment(self, appointment_id: int) -> None:
        """Delete the Zoom meeting; the row is kept as CANCELLED for audit"""
        meeting = self._get_by_appointment(appointment_id)
        if not meeting or meeting.status == MeetingStatus.CANCELLED:
            return
        try:
            await zoom_service.delete_meeting(meeting.zoom_meeting_id)
        except ZoomAPIError as e:
            logger.error(f"❌ Failed to delete Zoom meeting {meeting.zoom_meeting_id}: {e}")
        meeting.status = MeetingStatus.CANCELLED
        self.db.commit()
        logger.info(f"Meeting for appointment {appointment_id} marked cancelled")

    async def cancel_meeting(self, meeting_id: int, user: User) -> dict:
        meeting = self._get_meeting(meeting_id)
        ensure_participant(meeting.appointment, user)
        if user.role == UserRole.PATIENT:
            raise HTTPException(status_code=403, detail="Patients cannot cancel meetings")
        await self.cancel_for_appointment(meeting.appointment_id)
        self.db.refresh(meeting)
        return self.serialize(meeting, user)

    def set_status(self, meeting: ZoomMeeting, status: MeetingStatus) -> ZoomMeeting:
        meeting.status = status
        self.db.commit()
        logger.info(f"📹 Meeting {meeting.zoom_meeting_id} is now {status.value}")
        return meeting

    def start_meeting(self, meeting_id: int, user: User) -> dict:
        meeting = self._get_meeting(meeting_id)
        ensure_participant(meeting.appointment, user)
        if user.role == UserRole.PATIENT:
            raise HTTPException(status_code=403, detail="Only the host can start the meeting")
        return self.serialize(self.set_status(meeting, MeetingStatus.STARTED), user)

    def end_meeting(self, meeting_id: int, user: User) -> dict:
        meeting = self._get_meeting(meeting_id)
        ensure_participant(meeting.appointment, user)
        if user.role == UserRole.PATIENT:
            raise HTTPException(status_code=403, detail="Only the host can end the meeting")
        return self.serialize(self.set_status(meeting, MeetingStatus.ENDED), user)

    def update_status_by_zoom_id(self, zoom_meeting_id: str, status: MeetingStatus) -> Optional[ZoomMeeting]:
        meeting = self.db.query(ZoomMeeting).filter(ZoomMeeting.zoom_meeting_id == str(zoom_meeting_id)).first()
        if not meeting:
            logger.warning(f"⚠️ Zoom webhook for unknown meeting {zoom_meeting_id}")
            return None
        return self.set_status(meeting, status)

    def get_meeting_stats(self) -> dict:
        rows = self.db.query(ZoomMeeting.status, func.count(ZoomMeeting.id)).group_by(ZoomMeeting.status).all()
        counts = {status: count for status, count in rows}
        return {
            "total_meetings": sum(counts.values()),
            "scheduled_meetings": counts.get(MeetingStatus.SCHEDULED, 0),
            "active_meetings": counts.get(MeetingStatus.STARTED, 0),
            "completed_meetings": counts.get(MeetingStatus.ENDED, 0),
            "cancelled_meetings": counts.get(MeetingStatus.CANCELLED, 0),
        }

    def cleanup_old_meetings(self, days: int = ARCHIVE_AFTER_DAYS) -> int:
        """Count finished meetings old enough to archive"""
        cutoff = timeutils.utcnow() - timedelta(days=days)
        count = (
            self.db.query(func.count(ZoomMeeting.id))
            .filter(
                ZoomMeeting.start_time < cutoff,
                ZoomMeeting.status.in_([MeetingStatus.ENDED, MeetingStatus.CANCELLED]),
            )
            .scalar()
        )
        if count:
            logger.info(f"Found {count} old meetings for cleanup")
        return count
