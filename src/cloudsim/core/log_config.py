"""Process-wide logging setup."""

from __future__ import annotations

import logging

from cloudsim.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once, honouring ``LOG_LEVEL``."""
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("cloudsim").setLevel(resolved)
