"""One-time passcode records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, new_uuid

OTP_PURPOSE_LOGIN = "login"


class OtpRecord(Base):
    """A fingerprinted passcode awaiting verification.

    Rows are created on issuance, stamped once with ``used_at`` on successful
    verification, and deleted when superseded or swept.
    """

    __tablename__ = "otp_codes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False, default=OTP_PURPOSE_LOGIN)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
