"""SQLAlchemy models for the CloudSim application."""

from .audit import ActivityAction, ActivityLog, SecurityAuditEvent, SecurityEventType
from .file import FileRecord, FileReplica, ReplicaStatus
from .node import NodeStatus, StorageNode
from .otp import OTP_PURPOSE_LOGIN, OtpRecord
from .share import SharePermission, ShareLink
from .user import User, UserRole

__all__ = [
    "ActivityAction", "ActivityLog", "SecurityAuditEvent", "SecurityEventType",
    "FileRecord", "FileReplica", "ReplicaStatus",
    "NodeStatus", "StorageNode",
    "OTP_PURPOSE_LOGIN", "OtpRecord",
    "SharePermission", "ShareLink",
    "User", "UserRole",
]
