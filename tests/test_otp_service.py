# tests/test_otp_service.py
"""Tests for passcode issuance, verification and sweeping."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.sql.dml import Update

from cloudsim.core.client import ClientInfo
from cloudsim.core.errors import (
    AuthFailure,
    NotFound,
    RateLimited,
    StorageFailure,
    ValidationError,
)
from cloudsim.core.security import SECOND_FACTOR_TOKEN_TYPE, decode_token
from cloudsim.models import OtpRecord, SecurityAuditEvent, SecurityEventType, User
from cloudsim.services.hasher import CodeHasher, legacy_fingerprint
from cloudsim.services.otp import CODE_MAX, CODE_MIN, OtpService, generate_code
from cloudsim.services.throttle import VerificationThrottle

CLIENT = ClientInfo(ip_address="203.0.113.7", user_agent="pytest")


def _service(db: Session, clock: Any, delivery: Any, **overrides: Any) -> OtpService:
    options: dict[str, Any] = {
        "hasher": CodeHasher("legacy"),
        "delivery": delivery,
        "throttle": VerificationThrottle(max_attempts=5, window_seconds=300, redis_url=""),
        "clock": clock,
        "ttl_seconds": 300,
        "supersede_scope": "subject",
        "fail_closed_on_mark_error": False,
    }
    options.update(overrides)
    return OtpService(db, **options)


@pytest.fixture()
def otp_service(db_session: Session, clock: Any, delivery: Any) -> OtpService:
    return _service(db_session, clock, delivery)


def _events(db: Session, event_type: SecurityEventType) -> list[SecurityAuditEvent]:
    stmt = select(SecurityAuditEvent).where(SecurityAuditEvent.event_type == event_type)
    return list(db.scalars(stmt))


def _unused(db: Session, user: User) -> list[OtpRecord]:
    stmt = select(OtpRecord).where(OtpRecord.user_id == user.id, OtpRecord.used_at.is_(None))
    return list(db.scalars(stmt))


def test_generate_code_is_six_digits() -> None:
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert CODE_MIN <= int(code) <= CODE_MAX


def test_issue_persists_fingerprint_and_expiry(
    otp_service: OtpService, db_session: Session, test_user: User, clock: Any, delivery: Any
) -> None:
    issued = otp_service.issue(test_user.id, client=CLIENT)

    record = db_session.get(OtpRecord, issued.record_id)
    assert record is not None
    assert record.code_hash == legacy_fingerprint(issued.code)
    assert record.code_hash != issued.code
    assert record.expires_at == clock.now + timedelta(seconds=300)
    assert record.purpose == "login"
    assert record.ip_address == "203.0.113.7"
    assert record.used_at is None

    assert delivery.last_code == issued.code
    assert delivery.messages[-1].target == test_user.email


def test_issue_emits_generated_event(
    otp_service: OtpService, db_session: Session, test_user: User
) -> None:
    otp_service.issue(test_user.id, client=CLIENT)

    (event,) = _events(db_session, SecurityEventType.OTP_GENERATED)
    assert event.user_id == test_user.id
    assert event.success is True
    assert event.metadata_ == {"purpose": "login", "email": test_user.email}
    assert event.ip_address == "203.0.113.7"
    assert event.user_agent == "pytest"


def test_issue_rejects_missing_and_unknown_subjects(otp_service: OtpService) -> None:
    with pytest.raises(ValidationError):
        otp_service.issue("")
    with pytest.raises(ValidationError):
        otp_service.issue(None)
    with pytest.raises(NotFound):
        otp_service.issue("no-such-user")


@pytest.mark.parametrize("purpose", ["", "   "])
def test_blank_purpose_is_rejected_by_issue_and_verify(
    otp_service: OtpService, db_session: Session, test_user: User, purpose: str
) -> None:
    with pytest.raises(ValidationError, match="purpose is required"):
        otp_service.issue(test_user.id, purpose)
    with pytest.raises(ValidationError, match="purpose is required"):
        otp_service.verify(test_user.id, "123456", purpose)

    assert _unused(db_session, test_user) == []
    assert _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED) == []


def test_reissue_supersedes_unused_code(
    otp_service: OtpService, db_session: Session, test_user: User, mocker: Any
) -> None:
    mocker.patch("cloudsim.services.otp.generate_code", side_effect=["111111", "222222"])
    otp_service.issue(test_user.id)
    otp_service.issue(test_user.id)

    (live,) = _unused(db_session, test_user)
    assert live.code_hash == legacy_fingerprint("222222")

    with pytest.raises(AuthFailure):
        otp_service.verify(test_user.id, "111111")
    assert otp_service.verify(test_user.id, "222222").user_id == test_user.id


def test_subject_scope_supersedes_across_purposes(
    otp_service: OtpService, db_session: Session, test_user: User
) -> None:
    otp_service.issue(test_user.id, "login")
    otp_service.issue(test_user.id, "delete_account")

    (live,) = _unused(db_session, test_user)
    assert live.purpose == "delete_account"


def test_purpose_scope_keeps_other_purposes(
    db_session: Session, test_user: User, clock: Any, delivery: Any
) -> None:
    service = _service(db_session, clock, delivery, supersede_scope="subject_purpose")
    service.issue(test_user.id, "login")
    service.issue(test_user.id, "delete_account")
    service.issue(test_user.id, "login")

    purposes = sorted(record.purpose for record in _unused(db_session, test_user))
    assert purposes == ["delete_account", "login"]


def test_verify_success_marks_used_and_returns_second_factor(
    otp_service: OtpService, db_session: Session, test_user: User
) -> None:
    issued = otp_service.issue(test_user.id)

    verified = otp_service.verify(test_user.id, issued.code, client=CLIENT)

    payload = decode_token(verified.session_token, SECOND_FACTOR_TOKEN_TYPE)
    assert payload["sub"] == test_user.id
    assert payload["purpose"] == "login"

    db_session.expire_all()
    record = db_session.get(OtpRecord, issued.record_id)
    assert record is not None and record.used_at is not None

    (event,) = _events(db_session, SecurityEventType.OTP_VERIFICATION_SUCCESS)
    assert event.user_id == test_user.id
    assert event.success is True


def test_code_verifies_only_once(
    otp_service: OtpService, db_session: Session, test_user: User
) -> None:
    issued = otp_service.issue(test_user.id)
    assert [record.id for record in _unused(db_session, test_user)] == [issued.record_id]
    otp_service.verify(test_user.id, issued.code)

    with pytest.raises(AuthFailure):
        otp_service.verify(test_user.id, issued.code)

    assert len(_events(db_session, SecurityEventType.OTP_VERIFICATION_SUCCESS)) == 1
    assert len(_events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED)) == 1


def test_losing_the_mark_used_race_fails(
    otp_service: OtpService,
    db_session: Session,
    test_user: User,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    issued = otp_service.issue(test_user.id)
    original_mark_used = otp_service._mark_used

    def concurrent_mark_used(record_id: str, now: datetime) -> bool:
        # Another verifier stamps the row between lookup and update.
        db_session.execute(
            update(OtpRecord).where(OtpRecord.id == record_id).values(used_at=now)
        )
        return original_mark_used(record_id, now)

    monkeypatch.setattr(otp_service, "_mark_used", concurrent_mark_used)

    with pytest.raises(AuthFailure):
        otp_service.verify(test_user.id, issued.code)

    assert _events(db_session, SecurityEventType.OTP_VERIFICATION_SUCCESS) == []
    (event,) = _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED)
    assert event.user_id == test_user.id
    assert otp_service.throttle.failures(test_user.id, "login") == 1


def test_code_expires_after_ttl(otp_service: OtpService, test_user: User, clock: Any) -> None:
    issued = otp_service.issue(test_user.id)
    clock.advance(seconds=301)

    with pytest.raises(AuthFailure, match="Invalid or expired OTP"):
        otp_service.verify(test_user.id, issued.code)


def test_code_still_valid_just_before_expiry(
    otp_service: OtpService, test_user: User, clock: Any
) -> None:
    issued = otp_service.issue(test_user.id)
    clock.advance(seconds=299)

    assert otp_service.verify(test_user.id, issued.code).user_id == test_user.id


def test_code_for_other_purpose_does_not_verify(otp_service: OtpService, test_user: User) -> None:
    issued = otp_service.issue(test_user.id, "delete_account")

    with pytest.raises(AuthFailure):
        otp_service.verify(test_user.id, issued.code, "login")


@pytest.mark.parametrize("code", [None, "", "12345", "1234567", "abcdef", "12 456"])
def test_malformed_codes_are_rejected_before_lookup(
    otp_service: OtpService, db_session: Session, test_user: User, code: str | None
) -> None:
    with pytest.raises(ValidationError):
        otp_service.verify(test_user.id, code)
    assert _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED) == []


def test_wrong_code_fails_and_is_audited(
    otp_service: OtpService, db_session: Session, test_user: User, mocker: Any
) -> None:
    mocker.patch("cloudsim.services.otp.generate_code", return_value="424242")
    otp_service.issue(test_user.id)

    with pytest.raises(AuthFailure):
        otp_service.verify(test_user.id, "424243", client=CLIENT)

    (event,) = _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED)
    assert event.user_id == test_user.id
    assert event.success is False
    assert event.metadata_ == {"purpose": "login"}


def test_unknown_subject_is_audited_without_user(
    otp_service: OtpService, db_session: Session
) -> None:
    with pytest.raises(AuthFailure):
        otp_service.verify("ghost", "123456")

    (event,) = _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED)
    assert event.user_id is None
    assert event.metadata_["claimed_subject"] == "ghost"


def test_repeated_failures_are_rate_limited(
    db_session: Session, test_user: User, clock: Any, delivery: Any
) -> None:
    throttle = VerificationThrottle(max_attempts=2, window_seconds=300, redis_url="")
    service = _service(db_session, clock, delivery, throttle=throttle)
    issued = service.issue(test_user.id)
    wrong = "100000" if issued.code != "100000" else "100001"

    for _ in range(2):
        with pytest.raises(AuthFailure):
            service.verify(test_user.id, wrong)

    with pytest.raises(RateLimited):
        service.verify(test_user.id, issued.code)

    reasons = [
        event.metadata_.get("reason")
        for event in _events(db_session, SecurityEventType.OTP_VERIFICATION_FAILED)
    ]
    assert reasons.count("rate_limited") == 1


def test_success_resets_failure_counter(
    db_session: Session, test_user: User, clock: Any, delivery: Any
) -> None:
    throttle = VerificationThrottle(max_attempts=3, window_seconds=300, redis_url="")
    service = _service(db_session, clock, delivery, throttle=throttle)
    issued = service.issue(test_user.id)
    wrong = "100000" if issued.code != "100000" else "100001"

    with pytest.raises(AuthFailure):
        service.verify(test_user.id, wrong)
    service.verify(test_user.id, issued.code)

    assert throttle.failures(test_user.id, "login") == 0


def _fail_updates(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    original_execute = db.execute

    def flaky_execute(statement: Any, *args: Any, **kwargs: Any) -> Any:
        if isinstance(statement, Update):
            raise OperationalError("UPDATE otp_codes", {}, Exception("disk I/O error"))
        return original_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", flaky_execute)


def test_mark_used_failure_still_verifies_by_default(
    otp_service: OtpService,
    db_session: Session,
    test_user: User,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    issued = otp_service.issue(test_user.id)
    _fail_updates(db_session, monkeypatch)

    verified = otp_service.verify(test_user.id, issued.code)

    assert verified.user_id == test_user.id
    assert "Failed to mark OTP" in caplog.text


def test_mark_used_failure_can_fail_closed(
    db_session: Session,
    test_user: User,
    clock: Any,
    delivery: Any,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = _service(db_session, clock, delivery, fail_closed_on_mark_error=True)
    issued = service.issue(test_user.id)
    _fail_updates(db_session, monkeypatch)

    with pytest.raises(StorageFailure):
        service.verify(test_user.id, issued.code)


def test_issue_storage_failure_creates_nothing(
    otp_service: OtpService,
    db_session: Session,
    test_user: User,
    monkeypatch: pytest.MonkeyPatch,
    delivery: Any,
) -> None:
    original_commit = db_session.commit

    def failing_commit() -> None:
        raise OperationalError("INSERT INTO otp_codes", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(StorageFailure):
        otp_service.issue(test_user.id)
    monkeypatch.setattr(db_session, "commit", original_commit)

    assert _unused(db_session, test_user) == []
    assert delivery.messages == []


def test_sweep_removes_expired_and_used_records(
    otp_service: OtpService, db_session: Session, test_user: User, clock: Any
) -> None:
    now = clock.now
    db_session.add_all(
        [
            OtpRecord(
                user_id=test_user.id,
                code_hash="expired",
                created_at=now - timedelta(minutes=10),
                expires_at=now - timedelta(minutes=5),
            ),
            OtpRecord(
                user_id=test_user.id,
                code_hash="used",
                created_at=now - timedelta(minutes=1),
                expires_at=now + timedelta(minutes=4),
                used_at=now,
            ),
            OtpRecord(
                user_id=test_user.id,
                code_hash="live",
                created_at=now,
                expires_at=now + timedelta(minutes=5),
            ),
        ]
    )
    db_session.commit()

    assert otp_service.sweep() == 2

    db_session.expire_all()
    remaining = [record.code_hash for record in db_session.scalars(select(OtpRecord))]
    assert remaining == ["live"]
