"""Storage node schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cloudsim.models import NodeStatus
from cloudsim.models.node import DEFAULT_NODE_CAPACITY


class NodeResponse(BaseModel):
    id: str
    node_name: str
    capacity: int
    used_space: int
    free_space: int
    status: NodeStatus
    location: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NodeCreate(BaseModel):
    node_name: str = Field(..., min_length=1, max_length=128)
    capacity: int = Field(DEFAULT_NODE_CAPACITY, gt=0, description="Capacity in bytes")
    location: str | None = None
    status: NodeStatus = NodeStatus.ONLINE


class NodeUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    node_name: str | None = Field(None, min_length=1, max_length=128)
    capacity: int | None = Field(None, gt=0)
    location: str | None = None
    status: NodeStatus | None = None
