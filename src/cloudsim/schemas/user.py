"""User profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cloudsim.models import UserRole


class UserResponse(BaseModel):
    id: str
    email: str
    display_name: str | None = None
    role: UserRole
    storage_quota: int
    used_storage: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleUpdate(BaseModel):
    role: UserRole


class QuotaUpdate(BaseModel):
    storage_quota: int = Field(..., gt=0, description="Quota in bytes")
