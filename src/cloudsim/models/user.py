"""SQLAlchemy models for user profiles and roles."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, enum_type, new_uuid

DEFAULT_STORAGE_QUOTA = 5 * 1024**3


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """Profile of an identity issued by the external identity provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole),
        nullable=False,
        default=UserRole.USER,
    )
    storage_quota: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=DEFAULT_STORAGE_QUOTA,
    )
    used_storage: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
