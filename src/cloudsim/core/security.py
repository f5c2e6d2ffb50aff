"""Signed session tokens for first- and second-factor authentication."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from cloudsim.core.settings import settings
from cloudsim.db.time import utcnow

ACCESS_TOKEN_TYPE = "access"
SECOND_FACTOR_TOKEN_TYPE = "second_factor"


def _encode(claims: dict[str, Any], expires_minutes: int) -> tuple[str, datetime]:
    now = utcnow()
    expires_at = now + timedelta(minutes=expires_minutes)
    payload = {**claims, "iat": now, "exp": expires_at}
    token: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, expires_at


def create_access_token(user_id: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create a first-factor access token for ``user_id``.

    The identity provider owns sign-in; this helper mints the same shape of
    token for development tooling and tests.
    """
    claims: dict[str, Any] = {"sub": user_id, "type": ACCESS_TOKEN_TYPE}
    if extra_claims:
        claims.update(extra_claims)
    token, _ = _encode(claims, settings.access_token_expire_minutes)
    return token


def create_second_factor_token(user_id: str, purpose: str) -> tuple[str, datetime]:
    """Create a token proving that ``user_id`` passed OTP verification.

    Returns:
        Tuple of (token, expiry)
    """
    claims = {
        "sub": user_id,
        "type": SECOND_FACTOR_TOKEN_TYPE,
        "purpose": purpose,
        "amr": ["otp"],
    }
    return _encode(claims, settings.second_factor_ttl_minutes)


def decode_token(token: str, expected_type: str) -> dict[str, Any]:
    """Decode a token and check its ``type`` claim.

    Raises:
        JWTError: If the signature, expiry or type is invalid
    """
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    if payload.get("type") != expected_type:
        raise JWTError(f"Expected a {expected_type} token")
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload
