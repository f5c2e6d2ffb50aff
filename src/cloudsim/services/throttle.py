"""Failed-verification throttling for one-time passcodes."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from threading import Lock
from typing import Any, Final

import redis

from cloudsim.core.settings import settings

logger = logging.getLogger(__name__)

_KEY_PREFIX: Final[str] = "otpfail"


class VerificationThrottle:
    """Count failed verifications per (subject, purpose) in a fixed window.

    Counters live in Redis when ``REDIS_URL`` is configured. When Redis is not
    configured, or stops answering, the throttle keeps counting in-process.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        window_seconds: int | None = None,
        redis_url: str | None = None,
    ) -> None:
        self.max_attempts = settings.otp_max_attempts if max_attempts is None else max_attempts
        self.window_seconds = (
            settings.otp_attempt_window_seconds if window_seconds is None else window_seconds
        )
        self._redis: Any = None
        url = redis_url if redis_url is not None else settings.redis_url
        if url:
            self._redis = redis.from_url(url)  # type: ignore[no-untyped-call]
        # key -> [failures, window expiry (epoch seconds)]
        self._counters: dict[str, list[int]] = {}
        self._next_prune = 0
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 0

    @staticmethod
    def _key(subject: str, purpose: str) -> str:
        return f"{_KEY_PREFIX}:{purpose}:{subject}"

    def _drop_redis(self, exc: redis.RedisError) -> None:
        logger.warning("Redis unavailable for verification throttle, using memory: %s", exc)
        self._redis = None

    def _prune(self, now: int) -> None:
        """Drop expired in-process counters, at most once per window."""
        if now < self._next_prune:
            return
        expired = [key for key, (_, expiry) in self._counters.items() if expiry <= now]
        for key in expired:
            del self._counters[key]
        self._next_prune = now + self.window_seconds

    def failures(self, subject: str, purpose: str) -> int:
        """Return the failures counted in the current window."""
        key = self._key(subject, purpose)
        if self._redis is not None:
            try:
                value = self._redis.get(key)
                return int(value) if value is not None else 0
            except redis.RedisError as exc:
                self._drop_redis(exc)

        now = int(time.time())
        with self._lock:
            entry = self._counters.get(key)
            if entry is None:
                return 0
            if entry[1] <= now:
                self._counters.pop(key, None)
                return 0
            return entry[0]

    def is_locked(self, subject: str, purpose: str) -> bool:
        """Return True once the window has seen ``max_attempts`` failures."""
        if not self.enabled:
            return False
        return self.failures(subject, purpose) >= self.max_attempts

    def record_failure(self, subject: str, purpose: str) -> int:
        """Count one failure and return the running total for the window."""
        if not self.enabled:
            return 0
        key = self._key(subject, purpose)
        if self._redis is not None:
            try:
                count = int(self._redis.incr(key))
                if count == 1:
                    self._redis.expire(key, self.window_seconds)
                return count
            except redis.RedisError as exc:
                self._drop_redis(exc)

        now = int(time.time())
        with self._lock:
            self._prune(now)
            entry = self._counters.get(key)
            if entry is None or entry[1] <= now:
                entry = [0, now + self.window_seconds]
                self._counters[key] = entry
            entry[0] += 1
            return entry[0]

    def reset(self, subject: str, purpose: str) -> None:
        """Forget the failures of a subject after a successful verification."""
        key = self._key(subject, purpose)
        if self._redis is not None:
            try:
                self._redis.delete(key)
                return
            except redis.RedisError as exc:
                self._drop_redis(exc)

        with self._lock:
            self._counters.pop(key, None)


@lru_cache
def get_verification_throttle() -> VerificationThrottle:
    """Return the process-wide verification throttle."""
    return VerificationThrottle()
