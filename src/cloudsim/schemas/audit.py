"""Audit and activity log schemas."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cloudsim.models import ActivityAction, SecurityEventType


class SecurityEventResponse(BaseModel):
    id: str
    user_id: str | None = None
    event_type: SecurityEventType
    event_description: str
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    success: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SecurityStatsResponse(BaseModel):
    """Security events of the last 24 hours."""

    total: int
    successful: int
    failed: int
    otp_attempts: int


class ActivityResponse(BaseModel):
    id: str
    user_id: str | None = None
    action: ActivityAction
    resource_type: str
    resource_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityStatsResponse(BaseModel):
    """Activity of the last 24 hours by kind."""

    total: int
    uploads: int
    downloads: int
    deletes: int
    shares: int
