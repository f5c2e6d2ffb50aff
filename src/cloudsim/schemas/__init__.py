# src/cloudsim/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .audit import (
    ActivityResponse,
    ActivityStatsResponse,
    SecurityEventResponse,
    SecurityStatsResponse,
)
from .file import FileResponse, FileStatsResponse
from .node import NodeCreate, NodeResponse, NodeUpdate
from .otp import GenerateOtpRequest, GenerateOtpResponse, VerifyOtpRequest, VerifyOtpResponse
from .share import ShareCreate, SharedFileResponse, ShareResponse
from .user import QuotaUpdate, RoleUpdate, UserResponse

__all__ = [
    "ActivityResponse", "ActivityStatsResponse",
    "SecurityEventResponse", "SecurityStatsResponse",
    "FileResponse", "FileStatsResponse",
    "NodeCreate", "NodeResponse", "NodeUpdate",
    "GenerateOtpRequest", "GenerateOtpResponse", "VerifyOtpRequest", "VerifyOtpResponse",
    "ShareCreate", "SharedFileResponse", "ShareResponse",
    "QuotaUpdate", "RoleUpdate", "UserResponse",
]
