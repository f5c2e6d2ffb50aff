"""Token-based share links for single files."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cloudsim.core.client import ClientInfo
from cloudsim.core.errors import (
    AuthorizationError,
    NotFound,
    ShareUnavailable,
    StorageFailure,
    ValidationError,
)
from cloudsim.db.time import utcnow
from cloudsim.models import ActivityAction, FileRecord, SharePermission, ShareLink, User
from cloudsim.services.audit import AuditLogService
from cloudsim.services.blobs import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

RESOURCE_SHARE = "share"

SHARE_NOT_FOUND = "Share link not found or has expired"
SHARE_EXPIRED = "This share link has expired"
SHARE_DISABLED = "This share link has been disabled"
SHARE_EXHAUSTED = "Download limit reached for this share link"


class ShareService:
    """Create, resolve and consume share links."""

    def __init__(
        self,
        db: Session,
        *,
        blobs: BlobStore | None = None,
        audit: AuditLogService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.blobs = blobs or get_blob_store()
        self.audit = audit or AuditLogService(db, clock=clock)
        self._clock = clock

    def _owned_file(self, owner: User, file_id: str) -> FileRecord:
        record = self.db.get(FileRecord, file_id)
        if record is None or record.is_deleted or record.owner_id != owner.id:
            raise NotFound("File not found")
        return record

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to %s share link", action)
            raise StorageFailure(f"Failed to {action} share link") from exc

    def create(
        self,
        owner: User,
        file_id: str,
        *,
        permission: SharePermission = SharePermission.VIEW,
        expires_in_days: int | None = None,
        max_downloads: int | None = None,
        client: ClientInfo | None = None,
    ) -> ShareLink:
        record = self._owned_file(owner, file_id)
        if expires_in_days is not None and expires_in_days <= 0:
            raise ValidationError("expires_in_days must be at least 1")
        if max_downloads is not None and max_downloads <= 0:
            raise ValidationError("max_downloads must be at least 1")

        expires_at = None
        if expires_in_days is not None:
            expires_at = self._clock() + timedelta(days=expires_in_days)

        share = ShareLink(
            file_id=record.id,
            owner_id=owner.id,
            permission=permission,
            expires_at=expires_at,
            max_downloads=max_downloads,
        )
        self.db.add(share)
        self._commit("create")
        self.audit.record_activity(
            ActivityAction.SHARE_CREATE,
            user_id=owner.id,
            resource_type=RESOURCE_SHARE,
            resource_id=share.id,
            details={"file_id": record.id, "permission": permission.value},
            client=client,
        )
        return share

    def list_for_file(self, owner: User, file_id: str) -> list[ShareLink]:
        self._owned_file(owner, file_id)
        stmt = (
            select(ShareLink)
            .where(ShareLink.file_id == file_id, ShareLink.owner_id == owner.id)
            .order_by(ShareLink.created_at.desc())
        )
        return list(self.db.scalars(stmt))

    def delete(self, owner: User, share_id: str, *, client: ClientInfo | None = None) -> None:
        share = self.db.get(ShareLink, share_id)
        if share is None or share.owner_id != owner.id:
            raise NotFound("Share link not found")
        file_id = share.file_id
        self.db.delete(share)
        self._commit("delete")
        self.audit.record_activity(
            ActivityAction.SHARE_DELETE,
            user_id=owner.id,
            resource_type=RESOURCE_SHARE,
            resource_id=share_id,
            details={"file_id": file_id},
            client=client,
        )

    def resolve(self, token: str) -> ShareLink:
        """Return the usable share behind ``token``.

        Raises:
            NotFound: If no share has this token or its file is gone
            ShareUnavailable: If the share expired, was disabled or is exhausted
        """
        share = self.db.scalars(
            select(ShareLink).where(ShareLink.share_token == token)
        ).first()
        if share is None or share.file is None or share.file.is_deleted:
            raise NotFound(SHARE_NOT_FOUND)
        if share.is_expired(self._clock()):
            raise ShareUnavailable(SHARE_EXPIRED)
        if not share.is_active:
            raise ShareUnavailable(SHARE_DISABLED)
        if share.downloads_exhausted:
            raise ShareUnavailable(SHARE_EXHAUSTED)
        return share

    def claim(self, share: ShareLink) -> bool:
        """Count one download if the share is still usable.

        The check and the increment are one UPDATE, so concurrent downloads
        cannot overshoot ``max_downloads``.
        """
        now = self._clock()
        stmt = (
            update(ShareLink)
            .where(
                ShareLink.id == share.id,
                ShareLink.is_active.is_(True),
                or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now),
                or_(
                    ShareLink.max_downloads.is_(None),
                    ShareLink.download_count < ShareLink.max_downloads,
                ),
            )
            .values(download_count=ShareLink.download_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to count download for share %s", share.id)
            raise StorageFailure("Failed to record download") from exc
        self.db.refresh(share)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def download(
        self,
        token: str,
        *,
        client: ClientInfo | None = None,
    ) -> tuple[ShareLink, FileRecord, bytes]:
        share = self.resolve(token)
        if share.permission != SharePermission.DOWNLOAD:
            raise AuthorizationError("This share link does not allow downloads")
        if not self.claim(share):
            # Lost a race; report why the share is no longer usable.
            self.resolve(token)
            raise ShareUnavailable(SHARE_EXHAUSTED)

        record = share.file
        data = self.blobs.get(record.storage_path)
        self.audit.record_activity(
            ActivityAction.SHARE_DOWNLOAD,
            user_id=share.owner_id,
            resource_type=RESOURCE_SHARE,
            resource_id=share.id,
            details={"file_id": record.id, "filename": record.original_filename},
            client=client,
        )
        return share, record, data
