# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-cloudsim")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("SEED_DEFAULT_NODES", "false")
os.environ.setdefault("OTP_SWEEP_INTERVAL_SECONDS", "0")

from cloudsim.api.v1.endpoints import files as files_endpoints  # noqa: E402
from cloudsim.api.v1.endpoints import otp as otp_endpoints  # noqa: E402
from cloudsim.core.security import create_access_token, create_second_factor_token  # noqa: E402
from cloudsim.db.session import Base  # noqa: E402
from cloudsim.db.session import get_db as app_get_session  # noqa: E402
from cloudsim.db.time import utcnow  # noqa: E402
from cloudsim.main import app as fastapi_app  # noqa: E402
from cloudsim.models import NodeStatus, StorageNode, User, UserRole  # noqa: E402
from cloudsim.services.blobs import BlobStore  # noqa: E402
from cloudsim.services.delivery import OtpDelivery, OtpMessage  # noqa: E402
from cloudsim.services.throttle import get_verification_throttle  # noqa: E402

TEST_DB_URL = "sqlite://"


class RecordingDelivery(OtpDelivery):
    """Delivery channel that keeps every message for inspection."""

    def __init__(self) -> None:
        self.messages: list[OtpMessage] = []

    def deliver(self, message: OtpMessage) -> None:
        self.messages.append(message)

    @property
    def last_code(self) -> str:
        return self.messages[-1].code


class FakeClock:
    """Manually advanced clock injected into services."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs its own transaction handling disabled for SAVEPOINT to work.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits only release savepoints of an outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def blob_store(tmp_path: Path) -> BlobStore:
    return BlobStore(tmp_path / "blobs")


@pytest.fixture()
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_throttle() -> Iterator[None]:
    get_verification_throttle.cache_clear()
    yield
    get_verification_throttle.cache_clear()


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    blob_store: BlobStore,
    delivery: RecordingDelivery,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides: dict[Any, Any] = {
        app_get_session: _get_session_override,
        files_endpoints.get_blob_store_dep: lambda: blob_store,
        otp_endpoints.get_otp_delivery_dep: lambda: delivery,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def _make_user(db: Session, email: str, role: UserRole = UserRole.USER) -> User:
    user = User(email=email, display_name=email.split("@")[0].title(), role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """Create and return a persisted regular user."""
    return _make_user(db_session, "alice@example.com")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    """Create and return a second regular user."""
    return _make_user(db_session, "bob@example.com")


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    """Create and return a persisted administrator."""
    return _make_user(db_session, "root@example.com", UserRole.ADMIN)


@pytest.fixture()
def auth_headers(test_user: User) -> dict[str, str]:
    """Return authorization headers for the regular test user."""
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest.fixture()
def other_auth_headers(other_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}


@pytest.fixture()
def admin_headers(admin_user: User) -> dict[str, str]:
    """Return headers of an admin that already passed OTP verification."""
    second_factor, _ = create_second_factor_token(admin_user.id, "login")
    return {
        "Authorization": f"Bearer {create_access_token(admin_user.id)}",
        "X-Second-Factor": second_factor,
    }


@pytest.fixture()
def storage_nodes(db_session: Session) -> list[StorageNode]:
    """Three online nodes; ``node-beta`` is the least used."""
    nodes = [
        StorageNode(node_name="node-alpha", location="Region A", used_space=500),
        StorageNode(node_name="node-beta", location="Region B", used_space=100),
        StorageNode(node_name="node-gamma", location="Region C", used_space=900),
    ]
    db_session.add_all(nodes)
    db_session.commit()
    return nodes


@pytest.fixture()
def offline_nodes(db_session: Session) -> list[StorageNode]:
    nodes = [
        StorageNode(node_name="node-down", status=NodeStatus.OFFLINE),
        StorageNode(node_name="node-maint", status=NodeStatus.MAINTENANCE),
    ]
    db_session.add_all(nodes)
    db_session.commit()
    return nodes
