# tests/v1/test_dependencies.py
"""Tests for shared API dependencies."""

from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from starlette.requests import Request

from cloudsim.api.v1.dependencies import get_client_info, get_current_user
from cloudsim.core.client import UNKNOWN, ClientInfo
from cloudsim.core.security import create_access_token, create_second_factor_token
from cloudsim.models import User


def _request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_client_info_prefers_first_forwarded_hop() -> None:
    info = get_client_info(
        _request(
            {
                "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
                "X-Real-IP": "10.0.0.2",
                "User-Agent": "pytest",
            }
        )
    )

    assert info == ClientInfo(ip_address="203.0.113.7", user_agent="pytest")


def test_client_info_falls_back_to_real_ip() -> None:
    info = get_client_info(_request({"X-Real-IP": "198.51.100.4"}))

    assert info.ip_address == "198.51.100.4"
    assert info.user_agent == UNKNOWN


def test_client_info_without_headers() -> None:
    assert get_client_info(_request({})) == ClientInfo()


def test_current_user_from_access_token(db_session: Session, test_user: User) -> None:
    user = get_current_user(_bearer(create_access_token(test_user.id)), db_session)

    assert user.id == test_user.id


def test_missing_credentials(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        get_current_user(None, db_session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Not authenticated"


def test_garbage_token(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        get_current_user(_bearer("not-a-jwt"), db_session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_second_factor_token_is_not_an_access_token(
    db_session: Session, test_user: User
) -> None:
    token, _ = create_second_factor_token(test_user.id, "login")

    with pytest.raises(HTTPException) as exc_info:
        get_current_user(_bearer(token), db_session)

    assert exc_info.value.status_code == 401


def test_token_for_deleted_user(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        get_current_user(_bearer(create_access_token("gone")), db_session)

    assert exc_info.value.status_code == 401
