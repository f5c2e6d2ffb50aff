"""Placement of files on simulated storage nodes."""

from __future__ import annotations

import logging

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cloudsim.core.errors import NodeUnavailable, NotFound, StorageFailure, ValidationError
from cloudsim.core.settings import settings
from cloudsim.models import (
    FileRecord,
    FileReplica,
    NodeStatus,
    ReplicaStatus,
    StorageNode,
)
from cloudsim.models.node import DEFAULT_NODE_CAPACITY, DEFAULT_NODES

logger = logging.getLogger(__name__)

REPLICA_PATH_PREFIX = "replica_"


class NodeSelector:
    """Choose primary and replica nodes for uploads.

    Replicas are bookkeeping only: a row is written per node, no bytes move.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _online(self) -> Select[tuple[StorageNode]]:
        return (
            select(StorageNode)
            .where(StorageNode.status == NodeStatus.ONLINE)
            .order_by(StorageNode.used_space.asc(), StorageNode.node_name.asc())
        )

    def select_primary(self) -> StorageNode:
        """Return the least-used online node.

        Raises:
            NodeUnavailable: If no node is online
        """
        node = self.db.scalars(self._online().limit(1)).first()
        if node is None:
            logger.warning("Upload rejected: no online storage nodes")
            raise NodeUnavailable()
        return node

    def select_replicas(
        self,
        file: FileRecord,
        exclude: StorageNode | str | None = None,
        limit: int | None = None,
    ) -> list[FileReplica]:
        """Record replicas of ``file`` on up to ``limit`` other online nodes.

        The rows are added to the session but not committed. Fewer than
        ``limit`` replicas, or none, are accepted.
        """
        limit = settings.replica_count if limit is None else limit
        if limit <= 0:
            return []
        exclude_id = exclude.id if isinstance(exclude, StorageNode) else exclude

        stmt = self._online()
        if exclude_id is not None:
            stmt = stmt.where(StorageNode.id != exclude_id)
        nodes = list(self.db.scalars(stmt.limit(limit)))

        replicas = [
            FileReplica(
                file_id=file.id,
                node_id=node.id,
                replica_path=f"{REPLICA_PATH_PREFIX}{file.storage_path}",
                status=ReplicaStatus.SYNCED,
            )
            for node in nodes
        ]
        self.db.add_all(replicas)
        if len(replicas) < limit:
            logger.info(
                "File %s has %d of %d requested replicas", file.id, len(replicas), limit
            )
        return replicas

    # --- Administration -------------------------------------------------------------
    def list_nodes(self) -> list[StorageNode]:
        return list(self.db.scalars(select(StorageNode).order_by(StorageNode.node_name)))

    def online_count(self) -> int:
        stmt = (
            select(func.count())
            .select_from(StorageNode)
            .where(StorageNode.status == NodeStatus.ONLINE)
        )
        return int(self.db.scalar(stmt) or 0)

    def get_node(self, node_id: str) -> StorageNode:
        node = self.db.get(StorageNode, node_id)
        if node is None:
            raise NotFound("Storage node not found")
        return node

    def create_node(
        self,
        node_name: str,
        *,
        capacity: int = DEFAULT_NODE_CAPACITY,
        location: str | None = None,
        status: NodeStatus = NodeStatus.ONLINE,
    ) -> StorageNode:
        node_name = node_name.strip()
        if not node_name:
            raise ValidationError("node_name is required")
        if capacity <= 0:
            raise ValidationError("capacity must be positive")
        node = StorageNode(node_name=node_name, capacity=capacity, location=location, status=status)
        self.db.add(node)
        self._commit(f"Storage node {node_name} already exists")
        logger.info("Created storage node %s", node_name)
        return node

    def update_node(
        self,
        node_id: str,
        *,
        node_name: str | None = None,
        capacity: int | None = None,
        location: str | None = None,
        status: NodeStatus | None = None,
    ) -> StorageNode:
        node = self.get_node(node_id)
        if node_name is not None:
            if not node_name.strip():
                raise ValidationError("node_name is required")
            node.node_name = node_name.strip()
        if capacity is not None:
            if capacity <= 0:
                raise ValidationError("capacity must be positive")
            node.capacity = capacity
        if location is not None:
            node.location = location
        if status is not None:
            node.status = status
        self._commit(f"Storage node {node.node_name} already exists")
        logger.info("Updated storage node %s (status=%s)", node.node_name, node.status.value)
        return node

    def seed_default_nodes(self) -> int:
        """Insert the default node pool into an empty table."""
        if self.db.scalar(select(func.count()).select_from(StorageNode)):
            return 0
        for node_name, location in DEFAULT_NODES:
            self.db.add(StorageNode(node_name=node_name, location=location))
        self._commit("Default storage nodes already exist")
        logger.info("Seeded %d default storage nodes", len(DEFAULT_NODES))
        return len(DEFAULT_NODES)

    def _commit(self, conflict_message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ValidationError(conflict_message) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save storage node")
            raise StorageFailure("Failed to save storage node") from exc
