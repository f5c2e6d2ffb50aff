"""Out-of-band delivery of one-time passcodes.

No mail or SMS gateway is wired in; delivery is simulated by logging the
message for the operator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpMessage:
    """A passcode addressed to a delivery target such as an email address."""

    user_id: str
    target: str
    code: str
    purpose: str
    expires_in_seconds: int


class OtpDelivery:
    """Simulated delivery channel."""

    def deliver(self, message: OtpMessage) -> None:
        logger.info(
            "[SIMULATED] OTP for %s (%s): %s, valid for %ss",
            message.target,
            message.purpose,
            message.code,
            message.expires_in_seconds,
        )


def get_otp_delivery() -> OtpDelivery:
    return OtpDelivery()
