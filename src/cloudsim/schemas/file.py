"""File schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cloudsim.models import FileRecord


class FileResponse(BaseModel):
    """Metadata of a stored file."""

    id: str
    filename: str
    original_filename: str
    size: int
    mime_type: str | None = None
    checksum: str = Field(..., description="SHA-256 of the content, hex encoded")
    owner_id: str
    primary_node_id: str | None = None
    storage_path: str
    is_deleted: bool = False
    uploaded_at: datetime
    replica_node_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_record(cls, record: FileRecord) -> FileResponse:
        response = cls.model_validate(record)
        response.replica_node_ids = [replica.node_id for replica in record.replicas]
        return response


class FileStatsResponse(BaseModel):
    total_files: int
    total_size: int
    active_nodes: int
    recent_activity: int = Field(..., description="Own activity entries in the last 24 hours")
    used_storage: int
    storage_quota: int

    model_config = ConfigDict(from_attributes=True)
