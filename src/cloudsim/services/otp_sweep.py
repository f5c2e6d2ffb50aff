"""Background removal of expired and used one-time passcodes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from cloudsim.core.errors import StorageFailure
from cloudsim.core.settings import settings
from cloudsim.db.session import SessionLocal
from cloudsim.services.otp import OtpService

logger = logging.getLogger(__name__)


def sweep_once(session_factory: Callable[[], Session] = SessionLocal) -> int:
    """Run a single sweep in a fresh session."""
    db = session_factory()
    try:
        return OtpService(db).sweep()
    finally:
        db.close()


class OtpSweepWorker:
    """Periodically deletes OTP records that can no longer verify.

    The sweep itself is synchronous database work and runs in a worker thread
    so the event loop keeps serving requests.
    """

    def __init__(
        self,
        interval_seconds: float | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.interval_seconds = (
            settings.otp_sweep_interval_seconds if interval_seconds is None else interval_seconds
        )
        self._session_factory = session_factory
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.runs = 0

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    async def start(self) -> None:
        """Start the sweep loop unless the interval disables it."""
        if not self.enabled:
            return

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the sweep loop and wait for the current pass to finish."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(sweep_once, self._session_factory)
            except StorageFailure as e:
                logger.warning("OtpSweepWorker failed to sweep: %s", e)
            self.runs += 1

            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
