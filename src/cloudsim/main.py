# src/cloudsim/main.py
"""Main entry point for the CloudSim application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cloudsim.api.handlers import register_exception_handlers
from cloudsim.api.v1 import (
    activity_router,
    admin_router,
    files_router,
    nodes_router,
    otp_router,
    shares_router,
)
from cloudsim.core.log_config import configure_logging
from cloudsim.core.settings import settings
from cloudsim.db.session import SessionLocal, create_tables
from cloudsim.services.nodes import NodeSelector
from cloudsim.services.otp_sweep import OtpSweepWorker

logger = logging.getLogger(__name__)

DESCRIPTION = "Simulated distributed cloud storage with OTP-gated administration"

# Initialize FastAPI app
app = FastAPI(
    title="CloudSim API",
    description=DESCRIPTION,
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

register_exception_handlers(app)

# Include API routers
app.include_router(otp_router, prefix="/api/v1")
app.include_router(nodes_router, prefix="/api/v1")
app.include_router(files_router, prefix="/api/v1")
app.include_router(shares_router, prefix="/api/v1")
app.include_router(activity_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


def _prepare_database() -> None:
    if settings.auto_create_tables:
        create_tables()
    if settings.seed_default_nodes:
        db = SessionLocal()
        try:
            NodeSelector(db).seed_default_nodes()
        finally:
            db.close()


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    _prepare_database()
    worker = OtpSweepWorker()
    await worker.start()
    app.state.otp_sweep_worker = worker
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: OtpSweepWorker | None = getattr(app.state, "otp_sweep_worker", None)
    if worker:
        await worker.stop()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "CloudSim API",
        "version": settings.app_version,
        "description": DESCRIPTION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cloudsim.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
