"""Notification router - inbox, preferences and admin broadcast"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...database import get_db
from ...models import NotificationStatus, NotificationType, User, UserRole
from ...shared.pagination import Page
from .schemas import (
    BulkNotificationRequest,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
    NotificationStats,
)
from .service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """Dependency injection for NotificationService"""
    return NotificationService(db)


# ============================================================================
# INBOX
# ============================================================================


@router.get("", response_model=Page[NotificationResponse])
async def list_notifications(
    type: Optional[NotificationType] = Query(None),
    status: Optional[NotificationStatus] = Query(None),
    unread_only: bool = Query(False),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """List the current user's notifications, newest first"""
    return service.list_notifications(
        current_user, type, status, unread_only, date_from, date_to, page, limit
    )


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_stats(current_user)


@router.patch("/read-all")
async def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.mark_all_as_read(current_user)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.mark_as_read(notification_id, current_user)


# ============================================================================
# PREFERENCES
# ============================================================================


@router.get("/preferences", response_model=NotificationPreferenceResponse)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_preferences(current_user.id)


@router.put("/preferences", response_model=NotificationPreferenceResponse)
async def update_preferences(
    data: NotificationPreferenceUpdate,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.update_preferences(current_user.id, data)


# ============================================================================
# ADMIN
# ============================================================================


@router.post("/bulk")
async def send_bulk_notification(
    data: BulkNotificationRequest,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    service: NotificationService = Depends(get_notification_service),
):
    """Send the same notification to many users"""
    logger.info(f"📣 Admin {admin.id} sending bulk notification to {len(data.user_ids)} users")
    return await service.send_bulk_notification(
        data.user_ids, data.type, data.title, data.message, data.data, data.channels, data.scheduled_at
    )
