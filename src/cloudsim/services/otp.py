"""Issuance, verification and cleanup of one-time passcodes."""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal, NoReturn

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cloudsim.core.client import ClientInfo
from cloudsim.core.errors import AuthFailure, NotFound, RateLimited, StorageFailure, ValidationError
from cloudsim.core.security import create_second_factor_token
from cloudsim.core.settings import settings
from cloudsim.db.time import utcnow
from cloudsim.models import OTP_PURPOSE_LOGIN, OtpRecord, SecurityEventType, User
from cloudsim.services.audit import AuditLogService
from cloudsim.services.delivery import OtpDelivery, OtpMessage, get_otp_delivery
from cloudsim.services.hasher import CodeHasher, get_code_hasher
from cloudsim.services.throttle import VerificationThrottle, get_verification_throttle

logger = logging.getLogger(__name__)

CODE_MIN = 100_000
CODE_MAX = 999_999
_CODE_PATTERN = re.compile(r"[0-9]{6}")

SupersedeScope = Literal["subject", "subject_purpose"]


def generate_code() -> str:
    """Return a uniformly random 6-digit code."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


@dataclass(frozen=True)
class IssuedOtp:
    record_id: str
    user_id: str
    purpose: str
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class VerifiedOtp:
    user_id: str
    purpose: str
    session_token: str
    expires_at: datetime


class OtpService:
    """Issue and verify one-time passcodes.

    At most one live code exists per subject after an issuance (per subject
    and purpose when the supersede scope is ``subject_purpose``). A code
    verifies at most once: marking it used is a conditional update.
    """

    def __init__(
        self,
        db: Session,
        *,
        hasher: CodeHasher | None = None,
        audit: AuditLogService | None = None,
        delivery: OtpDelivery | None = None,
        throttle: VerificationThrottle | None = None,
        clock: Callable[[], datetime] = utcnow,
        ttl_seconds: int | None = None,
        supersede_scope: SupersedeScope | None = None,
        fail_closed_on_mark_error: bool | None = None,
    ) -> None:
        self.db = db
        self.hasher = hasher or get_code_hasher()
        self.audit = audit or AuditLogService(db, clock=clock)
        self.delivery = delivery or get_otp_delivery()
        self.throttle = throttle or get_verification_throttle()
        self._clock = clock
        self.ttl_seconds = settings.otp_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.supersede_scope: SupersedeScope = (
            supersede_scope or settings.otp_supersede_scope
        )
        self.fail_closed_on_mark_error = (
            settings.otp_fail_closed_on_mark_error
            if fail_closed_on_mark_error is None
            else fail_closed_on_mark_error
        )

    # --- Issuance -------------------------------------------------------------------
    def issue(
        self,
        subject: str | None,
        purpose: str = OTP_PURPOSE_LOGIN,
        *,
        client: ClientInfo | None = None,
        delivery_target: str | None = None,
    ) -> IssuedOtp:
        """Issue a fresh code for ``subject`` and supersede its unused codes.

        Raises:
            ValidationError: If the subject or purpose is missing
            NotFound: If the subject is not a known user
            StorageFailure: If the new code could not be persisted
        """
        subject = (subject or "").strip()
        purpose = (purpose or "").strip()
        if not subject:
            raise ValidationError("userId is required")
        if not purpose:
            raise ValidationError("purpose is required")

        user = self.db.get(User, subject)
        if user is None:
            raise NotFound("User not found")

        client = client or ClientInfo()
        code = generate_code()
        now = self._clock()
        expires_at = now + timedelta(seconds=self.ttl_seconds)

        stale = delete(OtpRecord).where(
            OtpRecord.user_id == subject,
            OtpRecord.used_at.is_(None),
        )
        if self.supersede_scope == "subject_purpose":
            stale = stale.where(OtpRecord.purpose == purpose)

        record = OtpRecord(
            user_id=subject,
            code_hash=self.hasher.fingerprint(code, subject),
            purpose=purpose,
            created_at=now,
            expires_at=expires_at,
            ip_address=client.ip_address,
        )
        try:
            self.db.execute(stale.execution_options(synchronize_session=False))
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to store OTP for %s", subject)
            raise StorageFailure("Failed to generate OTP") from exc

        target = delivery_target or user.email
        self.audit.record_security_event(
            SecurityEventType.OTP_GENERATED,
            f"OTP generated for {purpose}",
            user_id=subject,
            success=True,
            client=client,
            metadata={"purpose": purpose, "email": target},
        )
        self.delivery.deliver(
            OtpMessage(
                user_id=subject,
                target=target,
                code=code,
                purpose=purpose,
                expires_in_seconds=self.ttl_seconds,
            )
        )
        logger.info("Issued %s OTP for %s", purpose, subject)
        return IssuedOtp(
            record_id=record.id,
            user_id=subject,
            purpose=purpose,
            code=code,
            expires_at=expires_at,
        )

    # --- Verification ---------------------------------------------------------------
    def verify(
        self,
        subject: str | None,
        code: str | None,
        purpose: str = OTP_PURPOSE_LOGIN,
        *,
        client: ClientInfo | None = None,
    ) -> VerifiedOtp:
        """Check ``code`` against the live codes of ``subject``.

        Raises:
            ValidationError: If the subject, code or purpose is missing, or the
                code is malformed
            RateLimited: If too many verifications failed recently
            AuthFailure: If no live code matches
            StorageFailure: If marking the code used failed and the service
                is configured to fail closed
        """
        subject = (subject or "").strip()
        code = (code or "").strip()
        purpose = (purpose or "").strip()
        if not subject or not code:
            raise ValidationError("userId and otp are required")
        if not purpose:
            raise ValidationError("purpose is required")
        if not _CODE_PATTERN.fullmatch(code):
            raise ValidationError("OTP must be a 6-digit code")

        client = client or ClientInfo()
        user = self.db.get(User, subject)
        audit_user_id = user.id if user is not None else None
        metadata: dict[str, Any] = {"purpose": purpose}
        if user is None:
            metadata["claimed_subject"] = subject

        if self.throttle.is_locked(subject, purpose):
            self._record_failure(audit_user_id, client, {**metadata, "reason": "rate_limited"})
            raise RateLimited()

        now = self._clock()
        record = self.db.scalars(
            select(OtpRecord)
            .where(
                OtpRecord.user_id == subject,
                OtpRecord.code_hash == self.hasher.fingerprint(code, subject),
                OtpRecord.purpose == purpose,
                OtpRecord.used_at.is_(None),
                OtpRecord.expires_at > now,
            )
            .order_by(OtpRecord.created_at.desc())
            .limit(1)
        ).first()

        if record is None:
            self._reject(subject, purpose, audit_user_id, client, metadata)

        if not self._mark_used(record.id, now):
            self._reject(subject, purpose, audit_user_id, client, metadata)

        self.throttle.reset(subject, purpose)
        self.audit.record_security_event(
            SecurityEventType.OTP_VERIFICATION_SUCCESS,
            "OTP verified successfully",
            user_id=audit_user_id,
            success=True,
            client=client,
            metadata=metadata,
        )
        token, expires_at = create_second_factor_token(subject, purpose)
        logger.info("Verified %s OTP for %s", purpose, subject)
        return VerifiedOtp(
            user_id=subject,
            purpose=purpose,
            session_token=token,
            expires_at=expires_at,
        )

    def _mark_used(self, record_id: str, now: datetime) -> bool:
        """Stamp ``used_at`` unless another verifier got there first."""
        stmt = (
            update(OtpRecord)
            .where(OtpRecord.id == record_id, OtpRecord.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to mark OTP %s as used", record_id)
            if self.fail_closed_on_mark_error:
                raise StorageFailure("Failed to complete OTP verification") from exc
            return True
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def _record_failure(
        self,
        audit_user_id: str | None,
        client: ClientInfo,
        metadata: dict[str, Any],
    ) -> None:
        self.audit.record_security_event(
            SecurityEventType.OTP_VERIFICATION_FAILED,
            "OTP verification failed",
            user_id=audit_user_id,
            success=False,
            client=client,
            metadata=metadata,
        )

    def _reject(
        self,
        subject: str,
        purpose: str,
        audit_user_id: str | None,
        client: ClientInfo,
        metadata: dict[str, Any],
    ) -> NoReturn:
        self.throttle.record_failure(subject, purpose)
        self._record_failure(audit_user_id, client, metadata)
        raise AuthFailure()

    # --- Cleanup --------------------------------------------------------------------
    def sweep(self, now: datetime | None = None) -> int:
        """Delete expired and used codes, returning how many were removed."""
        now = now or self._clock()
        stmt = (
            delete(OtpRecord)
            .where(or_(OtpRecord.expires_at < now, OtpRecord.used_at.is_not(None)))
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("OTP sweep failed")
            raise StorageFailure("Failed to sweep OTP records") from exc
        removed = int(result.rowcount or 0)  # type: ignore[attr-defined]
        if removed:
            logger.info("Swept %d expired or used OTP records", removed)
        return removed
