"""
Notification channel delivery
Sends a stored notification out over email, SMS or in-app, subject to the
recipient's preferences
"""

import logging
from typing import Optional

from ..email_service import send_notification_email
from ..models import (
    Notification,
    NotificationChannel,
    NotificationPreference,
    NotificationType,
    User,
)
from ..security_utils import mask_sensitive_data
from ..shared.validators import validate_phone
from .twilio_service import send_sms

logger = logging.getLogger(__name__)

UPDATE_TYPES = {
    NotificationType.APPOINTMENT_BOOKED,
    NotificationType.APPOINTMENT_ACCEPTED,
    NotificationType.APPOINTMENT_REJECTED,
    NotificationType.APPOINTMENT_CANCELLED,
    NotificationType.APPOINTMENT_RESCHEDULED,
    NotificationType.APPOINTMENT_COMPLETED,
}
REMINDER_TYPES = {
    NotificationType.APPOINTMENT_REMINDER,
    NotificationType.MEETING_LINK_READY,
}
PAYMENT_TYPES = {
    NotificationType.PAYMENT_CONFIRMED,
    NotificationType.PAYMENT_REFUNDED,
}


def type_allowed(notification_type: NotificationType, preferences: NotificationPreference) -> bool:
    """Whether the user's category switches allow this notification type"""
    if notification_type in UPDATE_TYPES:
        return preferences.appointment_updates
    if notification_type in REMINDER_TYPES:
        return preferences.appointment_reminders
    if notification_type in PAYMENT_TYPES:
        return preferences.payment_notifications
    return True


def contact_phone(user: User) -> Optional[str]:
    profile = user.profile
    return getattr(profile, "phone", None) if profile else None


async def send_over_channel(
    channel: NotificationChannel,
    user: User,
    notification: Notification,
    preferences: NotificationPreference,
) -> tuple[bool, Optional[str]]:
    """
    Deliver one notification over one channel

    Returns:
        Tuple of (delivered: bool, reason: Optional[str])
    """
    channel = NotificationChannel(channel)

    if channel == NotificationChannel.IN_APP:
        # The stored row is the in-app notification
        if not preferences.in_app_enabled:
            return False, "In-app notifications disabled"
        return True, None

    if not type_allowed(notification.type, preferences):
        logger.debug(f"ℹ️ {notification.type.value} muted by preferences for user {user.id}")
        return False, f"{notification.type.value} notifications disabled"

    if channel == NotificationChannel.EMAIL:
        if not preferences.email_enabled:
            return False, "Email notifications disabled"
        try:
            logger.info(f"📧 Sending {notification.type.value} email to {mask_sensitive_data(user.email)}")
            await send_notification_email(
                to=user.email,
                user_name=user.display_name,
                title=notification.title,
                message=notification.message,
                data=notification.data,
            )
        except Exception as e:
            logger.error(f"❌ Failed to send {notification.type.value} email to user {user.id}: {e}")
            return False, str(e)
        return True, None

    if channel == NotificationChannel.SMS:
        if not preferences.sms_enabled:
            return False, "SMS notifications disabled"
        try:
            phone = validate_phone(contact_phone(user))
        except ValueError as e:
            logger.warning(f"⚠️ Invalid phone number for user {user.id}: {e}")
            return False, "Invalid phone number format"
        if not phone:
            return False, "No phone number on profile"

        logger.info(f"📱 Sending {notification.type.value} SMS to user {user.id}")
        return await send_sms(phone, f"{notification.title}: {notification.message}")

    return False, f"Unsupported channel {channel.value}"
