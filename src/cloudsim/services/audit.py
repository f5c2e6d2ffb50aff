"""Append-only audit sinks for security events and user activity."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cloudsim.core.client import ClientInfo
from cloudsim.db.time import utcnow
from cloudsim.models import (
    ActivityAction,
    ActivityLog,
    SecurityAuditEvent,
    SecurityEventType,
)

logger = logging.getLogger(__name__)

STATS_WINDOW = timedelta(hours=24)

_SHARE_ACTIONS = (
    ActivityAction.SHARE_CREATE,
    ActivityAction.SHARE_DELETE,
    ActivityAction.SHARE_DOWNLOAD,
)
_OTP_EVENTS = (
    SecurityEventType.OTP_GENERATED,
    SecurityEventType.OTP_VERIFICATION_SUCCESS,
    SecurityEventType.OTP_VERIFICATION_FAILED,
)


class AuditLogService:
    """Write and query the audit tables.

    Writes commit immediately. A failed write is rolled back and logged with
    its traceback but never raised, so the operation being audited keeps its
    own outcome.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def _append(self, entry: SecurityAuditEvent | ActivityLog) -> Any:
        self.db.add(entry)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to write audit entry %s", type(entry).__name__)
            return None
        return entry

    def record_security_event(
        self,
        event_type: SecurityEventType,
        description: str,
        *,
        user_id: str | None = None,
        success: bool = True,
        client: ClientInfo | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SecurityAuditEvent | None:
        """Append one security event."""
        client = client or ClientInfo()
        event = SecurityAuditEvent(
            user_id=user_id,
            event_type=event_type,
            event_description=description,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            metadata_=dict(metadata or {}),
            success=success,
            created_at=self._clock(),
        )
        result: SecurityAuditEvent | None = self._append(event)
        return result

    def record_activity(
        self,
        action: ActivityAction,
        *,
        user_id: str | None,
        resource_type: str,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
        client: ClientInfo | None = None,
    ) -> ActivityLog | None:
        """Append one activity entry."""
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=client.ip_address if client else None,
            created_at=self._clock(),
        )
        result: ActivityLog | None = self._append(entry)
        return result

    # --- Queries --------------------------------------------------------------------
    def recent_security_events(self, limit: int = 100) -> list[SecurityAuditEvent]:
        stmt = (
            select(SecurityAuditEvent)
            .order_by(SecurityAuditEvent.created_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def security_stats(self) -> dict[str, int]:
        """Summarise security events of the last 24 hours."""
        since = self._clock() - STATS_WINDOW
        rows = self.db.execute(
            select(SecurityAuditEvent.event_type, SecurityAuditEvent.success, func.count())
            .where(SecurityAuditEvent.created_at >= since)
            .group_by(SecurityAuditEvent.event_type, SecurityAuditEvent.success)
        ).all()
        total = sum(count for _, _, count in rows)
        successful = sum(count for _, success, count in rows if success)
        otp_attempts = sum(count for event_type, _, count in rows if event_type in _OTP_EVENTS)
        return {
            "total": total,
            "successful": successful,
            "failed": total - successful,
            "otp_attempts": otp_attempts,
        }

    def recent_activity(self, user_id: str | None = None, limit: int = 100) -> list[ActivityLog]:
        """Return newest activity first, optionally for one user."""
        stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc()).limit(limit)
        if user_id is not None:
            stmt = stmt.where(ActivityLog.user_id == user_id)
        return list(self.db.scalars(stmt))

    def activity_stats(self) -> dict[str, int]:
        """Count activity of the last 24 hours by kind."""
        since = self._clock() - STATS_WINDOW
        counts: dict[ActivityAction, int] = {
            action: count
            for action, count in self.db.execute(
                select(ActivityLog.action, func.count())
                .where(ActivityLog.created_at >= since)
                .group_by(ActivityLog.action)
            ).all()
        }
        return {
            "total": sum(counts.values()),
            "uploads": counts.get(ActivityAction.UPLOAD, 0),
            "downloads": counts.get(ActivityAction.DOWNLOAD, 0),
            "deletes": counts.get(ActivityAction.DELETE, 0),
            "shares": sum(counts.get(action, 0) for action in _SHARE_ACTIONS),
        }

    def count_activity_since(self, user_id: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(ActivityLog)
            .where(ActivityLog.user_id == user_id, ActivityLog.created_at >= since)
        )
        return int(self.db.scalar(stmt) or 0)
