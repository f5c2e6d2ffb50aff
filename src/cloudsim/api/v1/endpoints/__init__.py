# src/cloudsim/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .activity import router as activity_router
from .admin import router as admin_router
from .files import router as files_router
from .nodes import router as nodes_router
from .otp import router as otp_router
from .shares import router as shares_router

__all__ = [
    "activity_router",
    "admin_router",
    "files_router",
    "nodes_router",
    "otp_router",
    "shares_router",
]
