"""Appointment reminder jobs - one hour and ten minutes before the consultation"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from ...models import Appointment, AppointmentStatus, NotificationChannel, NotificationType, ScheduledJob
from ...shared import timeutils
from .repository import NotificationRepository
from .service import NotificationService, format_when

logger = logging.getLogger(__name__)

REMINDER_OFFSETS = {
    "one_hour": (timedelta(hours=1), "1 hour"),
    "ten_minutes": (timedelta(minutes=10), "10 minutes"),
}

REMINDER_CHANNELS = [NotificationChannel.EMAIL, NotificationChannel.SMS, NotificationChannel.IN_APP]


class ReminderService:
    """Creates, reschedules and executes appointment reminder jobs"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def create_appointment_reminders(self, appointment: Appointment) -> list[ScheduledJob]:
        """Create reminder jobs that still lie in the future"""
        now = timeutils.utcnow()
        zoom = appointment.zoom_meeting

        jobs = []
        for reminder_type, (offset, _) in REMINDER_OFFSETS.items():
            run_at = appointment.scheduled_date_time - offset
            if run_at <= now:
                continue
            payload = {
                "appointment_id": appointment.id,
                "user_id": appointment.patient.user_id,
                "reminder_type": reminder_type,
                "doctor_name": appointment.doctor.name,
                "patient_name": appointment.patient.name,
                "appointment_type": appointment.type.value,
                "clinic_name": appointment.doctor.clinic_name,
                "clinic_address": appointment.doctor.clinic_address,
            }
            if zoom and zoom.join_url:
                payload["join_url"] = zoom.join_url
            jobs.append(self.repo.create_job(self.db, appointment.id, run_at, payload))

        self.db.commit()
        logger.info(f"⏰ Created {len(jobs)} reminder jobs for appointment {appointment.id}")
        return jobs

    def cancel_appointment_reminders(self, appointment_id: int) -> int:
        count = self.repo.cancel_pending_jobs(self.db, appointment_id)
        logger.info(f"Cancelled {count} reminder jobs for appointment {appointment_id}")
        return count

    def update_appointment_reminders(self, appointment: Appointment) -> list[ScheduledJob]:
        """Replace pending reminders after a reschedule"""
        self.cancel_appointment_reminders(appointment.id)
        return self.create_appointment_reminders(appointment)

    def get_appointment_reminders(self, appointment_id: int) -> list[ScheduledJob]:
        return self.repo.get_pending_jobs(self.db, appointment_id)

    async def process_due_reminders(self) -> int:
        """Execute due reminder jobs; each job ends completed or failed"""
        due_jobs = self.repo.get_due_jobs(self.db, timeutils.utcnow())

        processed = 0
        for job in due_jobs:
            try:
                await self._execute(job)
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Error executing reminder job {job.id}: {e}")
                job.status = "failed"
                job.last_error = str(e)[:1000]
            else:
                job.status = "completed"
                processed += 1
            job.attempts = (job.attempts or 0) + 1
            self.db.commit()

        logger.info(f"Processed {processed} reminder jobs")
        return processed

    async def _execute(self, job: ScheduledJob) -> None:
        payload = job.payload or {}
        appointment = self.db.query(Appointment).filter(Appointment.id == job.entity_id).first()

        if not appointment or appointment.status == AppointmentStatus.CANCELLED:
            logger.info(f"Skipping reminder for cancelled appointment {job.entity_id}")
            return

        _, time_text = REMINDER_OFFSETS.get(payload.get("reminder_type"), REMINDER_OFFSETS["one_hour"])
        message = f"Your appointment with Dr. {appointment.doctor.name} is in {time_text}."
        if appointment.zoom_meeting:
            message += " Use the consultation link to join."

        data = {
            "appointment_id": appointment.id,
            "start_time": format_when(appointment.scheduled_date_time),
        }
        if appointment.zoom_meeting:
            data["join_url"] = appointment.zoom_meeting.join_url
            data["password"] = appointment.zoom_meeting.password

        await NotificationService(self.db).create_notification(
            user_id=payload.get("user_id", appointment.patient.user_id),
            notification_type=NotificationType.APPOINTMENT_REMINDER,
            title=f"Appointment Reminder - {time_text}",
            message=message,
            data=data,
            channels=REMINDER_CHANNELS,
        )
        logger.info(f"Sent {time_text} reminder for appointment {appointment.id}")

    def cleanup_old_jobs(self, days: int = 30) -> int:
        cutoff = timeutils.utcnow() - timedelta(days=days)
        count = self.repo.delete_finished_jobs(self.db, cutoff)
        logger.info(f"🧹 Cleaned up {count} old reminder jobs")
        return count
