"""Audit trail for admin actions"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import AdminActivityLog

logger = logging.getLogger(__name__)


def log_admin_activity(
    db: Session,
    admin_id: int,
    action: str,
    target_type: str,
    target_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> AdminActivityLog:
    """Add an activity row to the session; the caller's commit persists it"""
    entry = AdminActivityLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
    )
    db.add(entry)
    logger.info(f"🛡️ Admin {admin_id} {action} {target_type} {target_id}")
    return entry
