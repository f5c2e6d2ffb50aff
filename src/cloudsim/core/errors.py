"""Error taxonomy shared by services and the HTTP layer.

Every failure a service can report derives from :class:`CloudSimError` and
carries the HTTP status it maps to. The API converts them into
``{"error": message}`` bodies.
"""

from __future__ import annotations


class CloudSimError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CloudSimError):
    """Missing or malformed input."""

    status_code = 400
    default_message = "Invalid request"


class AuthFailure(CloudSimError):
    """No live one-time passcode matched.

    Shares the 400 status with :class:`ValidationError` so callers cannot tell
    a wrong code from a malformed request.
    """

    status_code = 400
    default_message = "Invalid or expired OTP"


class AuthorizationError(CloudSimError):
    status_code = 403
    default_message = "Access denied"


class NotFound(CloudSimError):
    status_code = 404
    default_message = "Not found"


class NodeUnavailable(NotFound):
    """No online storage node can accept a placement."""

    status_code = 503
    default_message = "No available storage nodes"


class ShareUnavailable(CloudSimError):
    """A share link exists but is expired, disabled or exhausted."""

    status_code = 410
    default_message = "This share link is no longer available"


class PayloadTooLarge(CloudSimError):
    status_code = 413
    default_message = "Upload too large"


class RateLimited(CloudSimError):
    status_code = 429
    default_message = "Too many verification attempts"


class StorageFailure(CloudSimError):
    """The persistence layer rejected a write."""

    status_code = 500
    default_message = "Storage failure"
