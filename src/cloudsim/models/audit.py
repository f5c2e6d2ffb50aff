"""Append-only security audit and user activity logs."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, enum_type, new_uuid


class SecurityEventType(str, enum.Enum):
    """Security-relevant events recorded in the audit log."""

    OTP_GENERATED = "otp_generated"
    OTP_VERIFICATION_SUCCESS = "otp_verification_success"
    OTP_VERIFICATION_FAILED = "otp_verification_failed"
    ADMIN_ACCESS = "admin_access"
    ADMIN_ACCESS_DENIED = "admin_access_denied"


class ActivityAction(str, enum.Enum):
    """User activity recorded against files and share links."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE = "delete"
    SHARE_CREATE = "share_create"
    SHARE_DELETE = "share_delete"
    SHARE_DOWNLOAD = "share_download"


class SecurityAuditEvent(Base):
    """One security event. Never updated or deleted by the application."""

    __tablename__ = "security_audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    # Null when the claimed subject did not resolve to a known user.
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    event_type: Mapped[SecurityEventType] = mapped_column(
        enum_type(SecurityEventType),
        nullable=False,
        index=True,
    )
    event_description: Mapped[str] = mapped_column(Text, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    # "metadata" is reserved on declarative classes, hence the trailing underscore.
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        index=True,
    )


class ActivityLog(Base):
    """One user action against a file or share link."""

    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[ActivityAction] = mapped_column(enum_type(ActivityAction), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(32), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        index=True,
    )
