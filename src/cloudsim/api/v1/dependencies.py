"""Shared API dependencies for authentication and common functionality."""

import logging
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from cloudsim.core.client import ClientInfo
from cloudsim.core.errors import AuthorizationError
from cloudsim.core.security import (
    ACCESS_TOKEN_TYPE,
    SECOND_FACTOR_TOKEN_TYPE,
    decode_token,
)
from cloudsim.db.session import get_db
from cloudsim.models import OTP_PURPOSE_LOGIN, SecurityEventType, User
from cloudsim.services.audit import AuditLogService

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT authentication; missing credentials are handled below
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def get_client_info(request: Request) -> ClientInfo:
    """Return the caller's origin address and user agent."""
    return ClientInfo.from_headers(request.headers)


ClientDep = Annotated[ClientInfo, Depends(get_client_info)]


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _resolve_user(credentials: HTTPAuthorizationCredentials | None, db: Session) -> User | None:
    if credentials is None:
        return None
    try:
        payload = decode_token(credentials.credentials, ACCESS_TOKEN_TYPE)
    except JWTError:
        return None
    return db.get(User, payload["sub"])


def get_current_user(credentials: BearerDep, db: SessionDep) -> User:
    """Get the current authenticated user from the bearer access token.

    Raises:
        HTTPException: If the token is missing or invalid, or the user is unknown
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    user = _resolve_user(credentials, db)
    if user is None:
        raise _unauthorized()
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def _second_factor_claims(token: str | None) -> dict[str, Any] | None:
    if not token:
        return None
    try:
        return decode_token(token, SECOND_FACTOR_TOKEN_TYPE)
    except JWTError:
        return None


def require_admin(
    request: Request,
    credentials: BearerDep,
    db: SessionDep,
    client: ClientDep,
    second_factor: Annotated[str | None, Header(alias="X-Second-Factor")] = None,
) -> User:
    """Admit administrators that completed OTP verification.

    Every call records exactly one ``admin_access`` or ``admin_access_denied``
    event.

    Raises:
        HTTPException: 401 when the caller is not authenticated
        AuthorizationError: When the caller is not an admin or has no valid
            login second-factor token for their own account
    """
    audit = AuditLogService(db)
    path = request.url.path
    user = _resolve_user(credentials, db)

    def deny(reason: str, user_id: str | None = None) -> None:
        logger.warning("Admin access denied on %s: %s", path, reason)
        audit.record_security_event(
            SecurityEventType.ADMIN_ACCESS_DENIED,
            "Admin panel access denied",
            user_id=user_id,
            success=False,
            client=client,
            metadata={"path": path, "reason": reason},
        )

    if user is None:
        deny("unauthenticated")
        raise _unauthorized()
    if not user.is_admin:
        deny("not_admin", user.id)
        raise AuthorizationError("Admin access required")
    claims = _second_factor_claims(second_factor)
    if claims is None or claims["sub"] != user.id:
        deny("second_factor_required", user.id)
        raise AuthorizationError("Second-factor verification required")
    if claims.get("purpose") != OTP_PURPOSE_LOGIN:
        deny("second_factor_purpose", user.id)
        raise AuthorizationError("Second-factor verification required")

    audit.record_security_event(
        SecurityEventType.ADMIN_ACCESS,
        "Admin panel accessed",
        user_id=user.id,
        success=True,
        client=client,
        metadata={"path": path},
    )
    return user


AdminDep = Annotated[User, Depends(require_admin)]
