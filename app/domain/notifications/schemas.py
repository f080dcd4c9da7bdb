"""Notification domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...models import NotificationChannel, NotificationStatus, NotificationType

DEFAULT_CHANNELS = [NotificationChannel.IN_APP, NotificationChannel.EMAIL]


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    channels: list[NotificationChannel]
    status: NotificationStatus
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationPreferenceResponse(BaseModel):
    email_enabled: bool
    sms_enabled: bool
    in_app_enabled: bool
    appointment_reminders: bool
    appointment_updates: bool
    payment_notifications: bool
    marketing_emails: bool

    class Config:
        from_attributes = True


class NotificationPreferenceUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    appointment_reminders: Optional[bool] = None
    appointment_updates: Optional[bool] = None
    payment_notifications: Optional[bool] = None
    marketing_emails: Optional[bool] = None


class BulkNotificationRequest(BaseModel):
    """Admin broadcast to a list of users"""

    user_ids: list[int]
    type: NotificationType = NotificationType.SYSTEM
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    channels: list[NotificationChannel] = DEFAULT_CHANNELS
    scheduled_at: Optional[datetime] = None

    @field_validator("user_ids")
    @classmethod
    def validate_user_ids(cls, v):
        if not v:
            raise ValueError("At least one user id is required")
        if len(v) > 1000:
            raise ValueError("Bulk notifications are limited to 1000 users")
        return list(dict.fromkeys(v))

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not 1 <= len(v) <= 255:
            raise ValueError("Title must be between 1 and 255 characters")
        return v

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Message is required")
        return v

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, v):
        if not v:
            raise ValueError("At least one channel is required")
        return list(dict.fromkeys(v))


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_type: dict[str, int]
    by_status: dict[str, int]


class ReminderJobResponse(BaseModel):
    id: int
    job_type: str
    entity_id: int
    scheduled_at: datetime
    payload: dict[str, Any]
    status: str

    class Config:
        from_attributes = True
