"""Upload, download and lifecycle of user files."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from cloudsim.core.client import ClientInfo
from cloudsim.core.errors import NotFound, PayloadTooLarge, StorageFailure, ValidationError
from cloudsim.core.settings import settings
from cloudsim.db.time import utcnow
from cloudsim.models import ActivityAction, FileRecord, StorageNode, User
from cloudsim.services.audit import STATS_WINDOW, AuditLogService
from cloudsim.services.blobs import BlobStore, get_blob_store
from cloudsim.services.nodes import NodeSelector
from cloudsim.utils.hash import sha256_hexdigest

logger = logging.getLogger(__name__)

RESOURCE_FILE = "file"


@dataclass(frozen=True)
class FileStats:
    total_files: int
    total_size: int
    active_nodes: int
    recent_activity: int
    used_storage: int
    storage_quota: int


def stored_filename(original_filename: str) -> str:
    """Return a collision-free stored name that keeps the original extension."""
    suffix = PurePath(original_filename).suffix.lstrip(".")
    return f"{uuid.uuid4()}.{suffix or 'bin'}"


class FileService:
    """Operations on files owned by a user."""

    def __init__(
        self,
        db: Session,
        *,
        blobs: BlobStore | None = None,
        selector: NodeSelector | None = None,
        audit: AuditLogService | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_upload_bytes: int | None = None,
    ) -> None:
        self.db = db
        self.blobs = blobs or get_blob_store()
        self.selector = selector or NodeSelector(db)
        self.audit = audit or AuditLogService(db, clock=clock)
        self._clock = clock
        self.max_upload_bytes = (
            settings.max_upload_bytes if max_upload_bytes is None else max_upload_bytes
        )

    def upload(
        self,
        owner: User,
        original_filename: str,
        data: bytes,
        mime_type: str | None = None,
        *,
        client: ClientInfo | None = None,
    ) -> FileRecord:
        """Store ``data`` on the least-used online node and record replicas.

        No bytes are written unless a primary node is available.

        Raises:
            ValidationError: If the upload has no name or no content
            PayloadTooLarge: If the upload exceeds the size limit or the quota
            NodeUnavailable: If no storage node is online
            StorageFailure: If the bytes or metadata could not be saved
        """
        original_filename = PurePath((original_filename or "").replace("\\", "/")).name
        if not original_filename:
            raise ValidationError("A file name is required")
        size = len(data)
        if size == 0:
            raise ValidationError("Empty files cannot be uploaded")
        if size > self.max_upload_bytes:
            raise PayloadTooLarge(f"File exceeds the {self.max_upload_bytes} byte upload limit")
        if owner.used_storage + size > owner.storage_quota:
            raise PayloadTooLarge("Storage quota exceeded")

        primary = self.selector.select_primary()

        filename = stored_filename(original_filename)
        storage_path = f"{owner.id}/{filename}"
        self.blobs.put(storage_path, data)

        record = FileRecord(
            id=str(uuid.uuid4()),
            filename=filename,
            original_filename=original_filename,
            size=size,
            mime_type=mime_type,
            checksum=sha256_hexdigest(data),
            owner_id=owner.id,
            primary_node_id=primary.id,
            storage_path=storage_path,
        )
        try:
            self.db.add(record)
            self.db.flush()
            self.selector.select_replicas(record, exclude=primary)
            primary.used_space += size
            owner.used_storage += size
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.blobs.delete(storage_path)
            logger.exception("Failed to record upload of %s", original_filename)
            raise StorageFailure("Failed to save file metadata") from exc

        logger.info("Stored %s (%d bytes) on %s", record.id, size, primary.node_name)
        self.audit.record_activity(
            ActivityAction.UPLOAD,
            user_id=owner.id,
            resource_type=RESOURCE_FILE,
            resource_id=record.id,
            details={"filename": original_filename, "size": size},
            client=client,
        )
        return record

    def list_files(self, owner: User) -> list[FileRecord]:
        """Return the owner's live files, newest first."""
        stmt = (
            select(FileRecord)
            .options(selectinload(FileRecord.replicas))
            .where(FileRecord.owner_id == owner.id, FileRecord.is_deleted.is_(False))
            .order_by(FileRecord.uploaded_at.desc())
        )
        return list(self.db.scalars(stmt))

    def list_all(self, limit: int = 500) -> list[FileRecord]:
        stmt = (
            select(FileRecord)
            .options(selectinload(FileRecord.replicas))
            .order_by(FileRecord.uploaded_at.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def get_owned(self, owner: User, file_id: str) -> FileRecord:
        """Return a live file of ``owner``; files of other users look missing."""
        record = self.db.get(FileRecord, file_id)
        if record is None or record.is_deleted or record.owner_id != owner.id:
            raise NotFound("File not found")
        return record

    def download(
        self,
        owner: User,
        file_id: str,
        *,
        client: ClientInfo | None = None,
    ) -> tuple[FileRecord, bytes]:
        record = self.get_owned(owner, file_id)
        data = self.blobs.get(record.storage_path)
        self.audit.record_activity(
            ActivityAction.DOWNLOAD,
            user_id=owner.id,
            resource_type=RESOURCE_FILE,
            resource_id=record.id,
            details={"filename": record.original_filename},
            client=client,
        )
        return record, data

    def delete(self, owner: User, file_id: str, *, client: ClientInfo | None = None) -> None:
        """Flag the record deleted, release its usage, then remove the bytes."""
        record = self.get_owned(owner, file_id)
        record.is_deleted = True
        owner.used_storage = max(owner.used_storage - record.size, 0)
        if record.primary_node_id is not None:
            node = self.db.get(StorageNode, record.primary_node_id)
            if node is not None:
                node.used_space = max(node.used_space - record.size, 0)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to delete file %s", file_id)
            raise StorageFailure("Failed to delete file") from exc

        # The record is already flagged deleted; leftover bytes are only logged.
        try:
            self.blobs.delete(record.storage_path)
        except StorageFailure:
            logger.warning("Deleted file %s but kept its bytes at %s", record.id, record.storage_path)
        logger.info("Deleted file %s", record.id)
        self.audit.record_activity(
            ActivityAction.DELETE,
            user_id=owner.id,
            resource_type=RESOURCE_FILE,
            resource_id=record.id,
            details={"filename": record.original_filename},
            client=client,
        )

    def stats(self, owner: User) -> FileStats:
        count, total = self.db.execute(
            select(func.count(FileRecord.id), func.coalesce(func.sum(FileRecord.size), 0)).where(
                FileRecord.owner_id == owner.id,
                FileRecord.is_deleted.is_(False),
            )
        ).one()
        return FileStats(
            total_files=int(count),
            total_size=int(total),
            active_nodes=self.selector.online_count(),
            recent_activity=self.audit.count_activity_since(owner.id, self._clock() - STATS_WINDOW),
            used_storage=owner.used_storage,
            storage_quota=owner.storage_quota,
        )
