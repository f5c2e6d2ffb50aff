"""Uploaded files and their bookkeeping replicas."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, enum_type, new_uuid
from cloudsim.models.node import StorageNode


class ReplicaStatus(str, enum.Enum):
    SYNCED = "synced"
    SYNCING = "syncing"
    FAILED = "failed"


class FileRecord(Base):
    """Metadata for one uploaded file.

    Deletion is soft: the bytes are removed from the blob store and the row is
    flagged with ``is_deleted``.
    """

    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    primary_node_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("storage_nodes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uploaded_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    primary_node: Mapped[StorageNode | None] = relationship("StorageNode")
    replicas: Mapped[list[FileReplica]] = relationship(
        "FileReplica",
        back_populates="file",
        cascade="all, delete-orphan",
    )


class FileReplica(Base):
    """Asserts that a file is mirrored on a node. No bytes are copied."""

    __tablename__ = "file_replicas"
    __table_args__ = (UniqueConstraint("file_id", "node_id", name="uq_file_replicas_file_node"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    file_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("storage_nodes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    replica_path: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ReplicaStatus] = mapped_column(
        enum_type(ReplicaStatus),
        nullable=False,
        default=ReplicaStatus.SYNCED,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    file: Mapped[FileRecord] = relationship("FileRecord", back_populates="replicas")
    node: Mapped[StorageNode] = relationship("StorageNode")
