"""Shareable links granting token-based access to a single file."""

from __future__ import annotations

import enum
import secrets
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, enum_type, new_uuid
from cloudsim.models.file import FileRecord

SHARE_TOKEN_BYTES = 32


def new_share_token() -> str:
    """Return an unguessable 64-character hex token."""
    return secrets.token_hex(SHARE_TOKEN_BYTES)


class SharePermission(str, enum.Enum):
    VIEW = "view"
    DOWNLOAD = "download"


class ShareLink(Base):
    """A share link. Usable while active, unexpired and under its download cap."""

    __tablename__ = "file_shares"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    file_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    share_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        default=new_share_token,
    )
    permission: Mapped[SharePermission] = mapped_column(
        enum_type(SharePermission),
        nullable=False,
        default=SharePermission.VIEW,
    )
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # Stored for schema compatibility; no verification path reads it.
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_downloads: Mapped[int | None] = mapped_column(Integer, nullable=True)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    file: Mapped[FileRecord] = relationship("FileRecord")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def downloads_exhausted(self) -> bool:
        return self.max_downloads is not None and self.download_count >= self.max_downloads
