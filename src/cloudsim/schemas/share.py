"""Share link schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cloudsim.models import SharePermission


class ShareCreate(BaseModel):
    permission: SharePermission = Field(SharePermission.VIEW, description="view or download")
    expires_in_days: int | None = Field(None, ge=1, description="Days until the link expires")
    max_downloads: int | None = Field(None, ge=1, description="Download cap; unlimited if unset")


class ShareResponse(BaseModel):
    id: str
    file_id: str
    share_token: str
    permission: SharePermission
    expires_at: datetime | None = None
    max_downloads: int | None = None
    download_count: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SharedFileInfo(BaseModel):
    id: str
    original_filename: str
    size: int
    mime_type: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SharedFileResponse(BaseModel):
    """Public view of a share link, as seen by whoever holds the token."""

    permission: SharePermission
    expires_at: datetime | None = None
    download_count: int
    max_downloads: int | None = None
    file: SharedFileInfo

    model_config = ConfigDict(from_attributes=True)
