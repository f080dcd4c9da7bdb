"""Notification service - Business logic for storing and delivering notifications"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationStatus,
    NotificationType,
    User,
)
from ...services.notification_service import send_over_channel
from ...shared import timeutils
from ...shared.pagination import build_page, normalize_paging, paginate_query
from .repository import NotificationRepository
from .schemas import DEFAULT_CHANNELS, NotificationPreferenceUpdate

logger = logging.getLogger(__name__)

# (title, message) per appointment event; formatted with doctor, patient and when
APPOINTMENT_MESSAGES = {
    NotificationType.APPOINTMENT_BOOKED: (
        "Appointment requested",
        "The appointment between Dr. {doctor} and {patient} on {when} is awaiting the doctor's acceptance.",
    ),
    NotificationType.APPOINTMENT_ACCEPTED: (
        "Appointment accepted",
        "Dr. {doctor} accepted the appointment on {when}. Complete the payment to confirm it.",
    ),
    NotificationType.APPOINTMENT_REJECTED: (
        "Appointment rejected",
        "Dr. {doctor} is unable to take the appointment on {when}.",
    ),
    NotificationType.APPOINTMENT_CANCELLED: (
        "Appointment cancelled",
        "The appointment between Dr. {doctor} and {patient} on {when} has been cancelled.",
    ),
    NotificationType.APPOINTMENT_RESCHEDULED: (
        "Appointment rescheduled",
        "The appointment between Dr. {doctor} and {patient} has moved to {when}.",
    ),
    NotificationType.APPOINTMENT_COMPLETED: (
        "Appointment completed",
        "The consultation with Dr. {doctor} on {when} is complete. You can now leave a review.",
    ),
    NotificationType.PAYMENT_CONFIRMED: (
        "Payment confirmed",
        "Payment received for the appointment with Dr. {doctor} on {when}. The appointment is confirmed.",
    ),
    NotificationType.PAYMENT_REFUNDED: (
        "Payment refunded",
        "The payment for the appointment with Dr. {doctor} on {when} has been refunded.",
    ),
    NotificationType.MEETING_LINK_READY: (
        "Consultation link ready",
        "The video consultation link for your appointment on {when} is ready.",
    ),
}


def format_when(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


class NotificationService:
    """Service layer for notification business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    # ------------------------------------------------------------------
    # Creation and delivery
    # ------------------------------------------------------------------

    async def create_notification(
        self,
        user_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
        channels: Optional[list[NotificationChannel]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> Notification:
        """Store a notification and deliver it now unless it is scheduled"""
        notification = self.repo.create_notification(
            self.db,
            user_id=user_id,
            type=NotificationType(notification_type),
            title=title,
            message=message,
            data=data or {},
            channels=[NotificationChannel(c).value for c in (channels or DEFAULT_CHANNELS)],
            scheduled_at=scheduled_at,
            status=NotificationStatus.PENDING,
        )

        if scheduled_at is None:
            await self.deliver(notification)
        else:
            logger.info(f"🗓️ Notification {notification.id} scheduled for {scheduled_at}")

        return notification

    async def deliver(self, notification: Notification) -> list[dict]:
        """Send a stored notification over each of its channels"""
        user = self.db.query(User).filter(User.id == notification.user_id).first()
        if not user:
            logger.error(f"❌ Notification {notification.id} has no recipient")
            notification.status = NotificationStatus.FAILED
            self.db.commit()
            return []

        preferences = self.get_preferences(user.id)
        results = []
        for channel in notification.channels:
            delivered, reason = await send_over_channel(channel, user, notification, preferences)
            results.append({"channel": channel, "success": delivered, "error": reason})

        all_delivered = bool(results) and all(r["success"] for r in results)
        notification.status = NotificationStatus.DELIVERED if all_delivered else NotificationStatus.FAILED
        notification.sent_at = timeutils.utcnow()
        self.db.commit()

        if all_delivered:
            logger.info(f"✅ Notification {notification.id} delivered to user {user.id}")
        else:
            failed = [f"{r['channel']}: {r['error']}" for r in results if not r["success"]]
            logger.warning(f"⚠️ Notification {notification.id} not fully delivered - {failed}")
        return results

    async def notify_appointment(
        self,
        appointment: Appointment,
        notification_type: NotificationType,
        recipients: tuple[str, ...] = ("patient", "doctor"),
        extra_data: Optional[dict[str, Any]] = None,
    ) -> list[Notification]:
        """
        Send an appointment event to its patient and/or doctor

        Failures are logged and never raised; callers treat notifications as side effects.
        """
        title, template = APPOINTMENT_MESSAGES[notification_type]
        message = template.format(
            doctor=appointment.doctor.name,
            patient=appointment.patient.name,
            when=format_when(appointment.scheduled_date_time),
        )
        data = {
            "appointment_id": appointment.id,
            "scheduled_date_time": appointment.scheduled_date_time.isoformat(),
            **(extra_data or {}),
        }

        user_ids = []
        if "patient" in recipients:
            user_ids.append(appointment.patient.user_id)
        if "doctor" in recipients:
            user_ids.append(appointment.doctor.user_id)

        sent = []
        for user_id in user_ids:
            try:
                sent.append(
                    await self.create_notification(user_id, notification_type, title, message, data)
                )
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"❌ Failed to send {notification_type.value} for appointment {appointment.id} "
                    f"to user {user_id}: {e}"
                )
        return sent

    async def send_bulk_notification(
        self,
        user_ids: list[int],
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
        channels: Optional[list[NotificationChannel]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> dict:
        existing = {uid for (uid,) in self.db.query(User.id).filter(User.id.in_(user_ids)).all()}
        missing = [uid for uid in user_ids if uid not in existing]
        if missing:
            raise HTTPException(status_code=404, detail=f"Users not found: {missing}")

        notifications = []
        for user_id in user_ids:
            notifications.append(
                await self.create_notification(
                    user_id, notification_type, title, message, data, channels, scheduled_at
                )
            )

        logger.info(f"📣 Bulk notification sent to {len(notifications)} users")
        return {"sent": len(notifications), "notification_ids": [n.id for n in notifications]}

    async def process_scheduled_notifications(self) -> int:
        """Deliver scheduled notifications whose time has come"""
        due = self.repo.get_due_scheduled(self.db, timeutils.utcnow())
        for notification in due:
            await self.deliver(notification)
        logger.info(f"Processed {len(due)} scheduled notifications")
        return len(due)

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        user: User,
        notification_type: Optional[NotificationType] = None,
        status: Optional[NotificationStatus] = None,
        unread_only: bool = False,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        page, limit = normalize_paging(page, limit)
        query = self.repo.list_query(
            self.db, user.id, notification_type, status, unread_only, date_from, date_to
        )
        items, total = paginate_query(query, page, limit)
        return build_page(items, total, page, limit)

    def mark_as_read(self, notification_id: int, user: User) -> Notification:
        notification = self.repo.get_notification(self.db, notification_id, user.id)
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        if notification.read_at is None:
            notification.read_at = timeutils.utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user: User) -> dict:
        count = self.repo.mark_all_as_read(self.db, user.id, timeutils.utcnow())
        return {"updated": count}

    def get_stats(self, user: User) -> dict:
        by_status = self.repo.count_by(self.db, user.id, Notification.status)
        return {
            "total": sum(by_status.values()),
            "unread": self.repo.count_unread(self.db, user.id),
            "by_type": self.repo.count_by(self.db, user.id, Notification.type),
            "by_status": by_status,
        }

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_preferences(self, user_id: int) -> NotificationPreference:
        """Get preferences, creating the defaults on first access"""
        preferences = self.repo.get_preferences(self.db, user_id)
        if not preferences:
            preferences = self.repo.create_default_preferences(self.db, user_id)
        return preferences

    def update_preferences(self, user_id: int, data: NotificationPreferenceUpdate) -> NotificationPreference:
        preferences = self.get_preferences(user_id)
        for key, value in data.model_dump(exclude_none=True).items():
            setattr(preferences, key, value)
        self.db.commit()
        self.db.refresh(preferences)
        logger.info(f"✅ Notification preferences updated for user {user_id}")
        return preferences
