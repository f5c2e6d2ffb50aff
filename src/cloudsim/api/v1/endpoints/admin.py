# src/cloudsim/api/v1/endpoints/admin.py
"""Administration endpoints.

Every route requires an admin account and a second-factor session token; see
:func:`cloudsim.api.v1.dependencies.require_admin`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from cloudsim.api.v1.dependencies import AdminDep, SessionDep
from cloudsim.api.v1.endpoints.nodes import NodeSelectorDep
from cloudsim.schemas.audit import (
    ActivityResponse,
    ActivityStatsResponse,
    SecurityEventResponse,
    SecurityStatsResponse,
)
from cloudsim.schemas.file import FileResponse
from cloudsim.schemas.node import NodeCreate, NodeResponse, NodeUpdate
from cloudsim.schemas.user import QuotaUpdate, RoleUpdate, UserResponse
from cloudsim.services.audit import AuditLogService
from cloudsim.services.files import FileService
from cloudsim.services.users import UserService

router = APIRouter(prefix="/admin", tags=["admin"])


def get_audit_service_dep(db: SessionDep) -> AuditLogService:
    return AuditLogService(db)


def get_user_service_dep(db: SessionDep) -> UserService:
    return UserService(db)


AuditServiceDep = Annotated[AuditLogService, Depends(get_audit_service_dep)]
UserServiceDep = Annotated[UserService, Depends(get_user_service_dep)]


# --- Nodes --------------------------------------------------------------------------
@router.get("/nodes", response_model=list[NodeResponse])
async def admin_list_nodes(admin: AdminDep, nodes: NodeSelectorDep) -> list[NodeResponse]:
    return [NodeResponse.model_validate(node) for node in nodes.list_nodes()]


@router.post("/nodes", response_model=NodeResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_node(
    payload: NodeCreate,
    admin: AdminDep,
    nodes: NodeSelectorDep,
) -> NodeResponse:
    node = nodes.create_node(
        payload.node_name,
        capacity=payload.capacity,
        location=payload.location,
        status=payload.status,
    )
    return NodeResponse.model_validate(node)


@router.patch("/nodes/{node_id}", response_model=NodeResponse)
async def admin_update_node(
    node_id: str,
    payload: NodeUpdate,
    admin: AdminDep,
    nodes: NodeSelectorDep,
) -> NodeResponse:
    node = nodes.update_node(
        node_id,
        node_name=payload.node_name,
        capacity=payload.capacity,
        location=payload.location,
        status=payload.status,
    )
    return NodeResponse.model_validate(node)


# --- Users --------------------------------------------------------------------------
@router.get("/users", response_model=list[UserResponse])
async def admin_list_users(admin: AdminDep, users: UserServiceDep) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in users.list_users()]


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def admin_set_role(
    user_id: str,
    payload: RoleUpdate,
    admin: AdminDep,
    users: UserServiceDep,
) -> UserResponse:
    return UserResponse.model_validate(users.set_role(user_id, payload.role))


@router.patch("/users/{user_id}/quota", response_model=UserResponse)
async def admin_set_quota(
    user_id: str,
    payload: QuotaUpdate,
    admin: AdminDep,
    users: UserServiceDep,
) -> UserResponse:
    return UserResponse.model_validate(users.set_quota(user_id, payload.storage_quota))


# --- Files --------------------------------------------------------------------------
@router.get("/files", response_model=list[FileResponse])
async def admin_list_files(
    admin: AdminDep,
    db: SessionDep,
    limit: int = Query(500, ge=1, le=5000),
) -> list[FileResponse]:
    records = FileService(db).list_all(limit=limit)
    return [FileResponse.from_record(record) for record in records]


# --- Logs ---------------------------------------------------------------------------
@router.get("/security-logs", response_model=list[SecurityEventResponse])
async def admin_security_logs(
    admin: AdminDep,
    audit: AuditServiceDep,
    limit: int = Query(100, ge=1, le=1000),
) -> list[SecurityEventResponse]:
    return [SecurityEventResponse.model_validate(e) for e in audit.recent_security_events(limit)]


@router.get("/security-logs/stats", response_model=SecurityStatsResponse)
async def admin_security_stats(admin: AdminDep, audit: AuditServiceDep) -> SecurityStatsResponse:
    return SecurityStatsResponse(**audit.security_stats())


@router.get("/activity", response_model=list[ActivityResponse])
async def admin_activity(
    admin: AdminDep,
    audit: AuditServiceDep,
    limit: int = Query(100, ge=1, le=1000),
) -> list[ActivityResponse]:
    return [ActivityResponse.model_validate(e) for e in audit.recent_activity(limit=limit)]


@router.get("/activity/stats", response_model=ActivityStatsResponse)
async def admin_activity_stats(admin: AdminDep, audit: AuditServiceDep) -> ActivityStatsResponse:
    return ActivityStatsResponse(**audit.activity_stats())
