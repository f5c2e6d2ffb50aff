# src/cloudsim/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    activity_router,
    admin_router,
    files_router,
    nodes_router,
    otp_router,
    shares_router,
)

__all__ = [
    "activity_router",
    "admin_router",
    "files_router",
    "nodes_router",
    "otp_router",
    "shares_router",
]
