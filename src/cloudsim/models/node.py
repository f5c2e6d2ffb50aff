"""Simulated storage nodes."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cloudsim.db.session import Base
from cloudsim.db.time import utcnow
from cloudsim.db.types import UTCDateTime, enum_type, new_uuid

DEFAULT_NODE_CAPACITY = 10 * 1024**3

# (node_name, location) pairs seeded into an empty pool.
DEFAULT_NODES: tuple[tuple[str, str], ...] = (
    ("node-alpha", "Region A"),
    ("node-beta", "Region B"),
    ("node-gamma", "Region C"),
)


class NodeStatus(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


class StorageNode(Base):
    """A placement target. Only ``online`` nodes receive new files."""

    __tablename__ = "storage_nodes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    node_name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=DEFAULT_NODE_CAPACITY,
    )
    used_space: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[NodeStatus] = mapped_column(
        enum_type(NodeStatus),
        nullable=False,
        default=NodeStatus.ONLINE,
    )
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def free_space(self) -> int:
        return max(self.capacity - self.used_space, 0)
