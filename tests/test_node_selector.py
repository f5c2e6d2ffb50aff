# tests/test_node_selector.py
"""Tests for primary and replica placement."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cloudsim.core.errors import NodeUnavailable, NotFound, ValidationError
from cloudsim.models import FileRecord, FileReplica, NodeStatus, ReplicaStatus, StorageNode, User
from cloudsim.services.nodes import NodeSelector


@pytest.fixture()
def file_record(db_session: Session, test_user: User) -> FileRecord:
    record = FileRecord(
        filename="f.txt",
        original_filename="notes.txt",
        size=10,
        checksum="0" * 64,
        owner_id=test_user.id,
        storage_path=f"{test_user.id}/f.txt",
    )
    db_session.add(record)
    db_session.commit()
    return record


def test_primary_is_least_used_online_node(
    db_session: Session, storage_nodes: list[StorageNode], offline_nodes: list[StorageNode]
) -> None:
    assert NodeSelector(db_session).select_primary().node_name == "node-beta"


def test_primary_ties_break_by_name(db_session: Session) -> None:
    db_session.add_all([StorageNode(node_name="zeta"), StorageNode(node_name="eta")])
    db_session.commit()

    assert NodeSelector(db_session).select_primary().node_name == "eta"


def test_no_online_nodes_is_unavailable(
    db_session: Session, offline_nodes: list[StorageNode]
) -> None:
    with pytest.raises(NodeUnavailable, match="No available storage nodes") as exc_info:
        NodeSelector(db_session).select_primary()

    assert isinstance(exc_info.value, NotFound)
    assert exc_info.value.status_code == 503


def test_replicas_exclude_primary_and_respect_limit(
    db_session: Session, storage_nodes: list[StorageNode], file_record: FileRecord
) -> None:
    selector = NodeSelector(db_session)
    primary = selector.select_primary()

    replicas = selector.select_replicas(file_record, exclude=primary, limit=2)
    db_session.commit()

    assert len(replicas) == 2
    assert primary.id not in {replica.node_id for replica in replicas}
    for replica in replicas:
        assert replica.status == ReplicaStatus.SYNCED
        assert replica.replica_path == f"replica_{file_record.storage_path}"


def test_fewer_replicas_are_accepted_silently(
    db_session: Session, file_record: FileRecord
) -> None:
    only = StorageNode(node_name="solo")
    db_session.add(only)
    db_session.commit()

    replicas = NodeSelector(db_session).select_replicas(file_record, exclude=only, limit=2)
    db_session.commit()

    assert replicas == []
    count = db_session.scalar(select(func.count()).select_from(FileReplica))
    assert count == 0


def test_seed_default_nodes_only_fills_empty_pool(db_session: Session) -> None:
    selector = NodeSelector(db_session)

    assert selector.seed_default_nodes() == 3
    assert selector.seed_default_nodes() == 0
    names = [node.node_name for node in selector.list_nodes()]
    assert names == ["node-alpha", "node-beta", "node-gamma"]
    assert selector.online_count() == 3


def test_create_node_rejects_duplicates(db_session: Session) -> None:
    selector = NodeSelector(db_session)
    selector.create_node("node-delta", capacity=1024, location="Region D")

    with pytest.raises(ValidationError):
        selector.create_node("node-delta")


def test_update_node_changes_status(
    db_session: Session, storage_nodes: list[StorageNode]
) -> None:
    selector = NodeSelector(db_session)
    beta = storage_nodes[1]

    updated = selector.update_node(beta.id, status=NodeStatus.MAINTENANCE, capacity=2048)

    assert updated.status == NodeStatus.MAINTENANCE
    assert updated.capacity == 2048
    assert selector.select_primary().node_name == "node-alpha"


def test_update_unknown_node_is_not_found(db_session: Session) -> None:
    with pytest.raises(NotFound):
        NodeSelector(db_session).update_node("missing", status=NodeStatus.OFFLINE)
