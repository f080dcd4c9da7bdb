"""Notification repository - Database operations for notifications and reminder jobs"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    Notification,
    NotificationPreference,
    NotificationStatus,
    NotificationType,
    ScheduledJob,
)

REMINDER_JOB_TYPE = "appointment_reminder"


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def create_notification(db: Session, **data) -> Notification:
        notification = Notification(**data)
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def get_notification(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )

    @staticmethod
    def list_query(
        db: Session,
        user_id: int,
        notification_type: Optional[NotificationType] = None,
        status: Optional[NotificationStatus] = None,
        unread_only: bool = False,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ):
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if notification_type:
            query = query.filter(Notification.type == notification_type)
        if status:
            query = query.filter(Notification.status == status)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        if date_from:
            query = query.filter(Notification.created_at >= date_from)
        if date_to:
            query = query.filter(Notification.created_at <= date_to)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc())

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int, read_at: datetime) -> int:
        count = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
            .update({Notification.read_at: read_at}, synchronize_session=False)
        )
        db.commit()
        return count

    @staticmethod
    def count_by(db: Session, user_id: int, column) -> dict[str, int]:
        rows = (
            db.query(column, func.count(Notification.id))
            .filter(Notification.user_id == user_id)
            .group_by(column)
            .all()
        )
        return {key.value: count for key, count in rows}

    @staticmethod
    def count_unread(db: Session, user_id: int) -> int:
        return (
            db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
            .scalar()
        )

    @staticmethod
    def get_due_scheduled(db: Session, now: datetime) -> list[Notification]:
        return (
            db.query(Notification)
            .filter(
                Notification.status == NotificationStatus.PENDING,
                Notification.scheduled_at.isnot(None),
                Notification.scheduled_at <= now,
            )
            .order_by(Notification.scheduled_at.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    @staticmethod
    def get_preferences(db: Session, user_id: int) -> Optional[NotificationPreference]:
        return db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()

    @staticmethod
    def create_default_preferences(db: Session, user_id: int) -> NotificationPreference:
        preferences = NotificationPreference(user_id=user_id)
        db.add(preferences)
        db.commit()
        db.refresh(preferences)
        return preferences

    # ------------------------------------------------------------------
    # Reminder jobs
    # ------------------------------------------------------------------

    @staticmethod
    def create_job(db: Session, entity_id: int, scheduled_at: datetime, payload: dict) -> ScheduledJob:
        job = ScheduledJob(
            job_type=REMINDER_JOB_TYPE,
            entity_id=entity_id,
            scheduled_at=scheduled_at,
            payload=payload,
            status="pending",
        )
        db.add(job)
        return job

    @staticmethod
    def get_pending_jobs(db: Session, entity_id: int) -> list[ScheduledJob]:
        return (
            db.query(ScheduledJob)
            .filter(
                ScheduledJob.job_type == REMINDER_JOB_TYPE,
                ScheduledJob.entity_id == entity_id,
                ScheduledJob.status == "pending",
            )
            .order_by(ScheduledJob.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def cancel_pending_jobs(db: Session, entity_id: int) -> int:
        count = (
            db.query(ScheduledJob)
            .filter(
                ScheduledJob.job_type == REMINDER_JOB_TYPE,
                ScheduledJob.entity_id == entity_id,
                ScheduledJob.status == "pending",
            )
            .update({ScheduledJob.status: "cancelled"}, synchronize_session=False)
        )
        db.commit()
        return count

    @staticmethod
    def get_due_jobs(db: Session, now: datetime) -> list[ScheduledJob]:
        return (
            db.query(ScheduledJob)
            .filter(
                ScheduledJob.job_type == REMINDER_JOB_TYPE,
                ScheduledJob.status == "pending",
                ScheduledJob.scheduled_at <= now,
            )
            .order_by(ScheduledJob.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def delete_finished_jobs(db: Session, cutoff: datetime) -> int:
        count = (
            db.query(ScheduledJob)
            .filter(
                ScheduledJob.status.in_(["completed", "failed", "cancelled"]),
                ScheduledJob.updated_at < cutoff,
            )
            .delete(synchronize_session=False)
        )
        db.commit()
        return count
