"""Administrative operations on user profiles."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cloudsim.core.errors import NotFound, StorageFailure, ValidationError
from cloudsim.models import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_users(self) -> list[User]:
        return list(self.db.scalars(select(User).order_by(User.created_at.desc())))

    def get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def create_user(
        self,
        email: str,
        display_name: str | None = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create a profile; the identity provider normally does this on sign-up."""
        email = email.strip().lower()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        if self.db.scalars(select(User).where(User.email == email)).first() is not None:
            raise ValidationError(f"User {email} already exists")
        user = User(email=email, display_name=display_name, role=role)
        self.db.add(user)
        self._commit()
        return user

    def set_role(self, user_id: str, role: UserRole) -> User:
        user = self.get_user(user_id)
        user.role = role
        self._commit()
        logger.info("Set role of %s to %s", user_id, role.value)
        return user

    def set_quota(self, user_id: str, storage_quota: int) -> User:
        if storage_quota <= 0:
            raise ValidationError("storage_quota must be positive")
        user = self.get_user(user_id)
        user.storage_quota = storage_quota
        self._commit()
        logger.info("Set storage quota of %s to %d bytes", user_id, storage_quota)
        return user

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save user")
            raise StorageFailure("Failed to save user") from exc
