"""Network metadata describing the caller of a request."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClientInfo:
    """Origin address and user agent recorded alongside audit events."""

    ip_address: str = UNKNOWN
    user_agent: str = UNKNOWN

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> ClientInfo:
        """Build client info from proxy headers.

        The first hop of ``X-Forwarded-For`` wins, then ``X-Real-IP``.
        """
        forwarded = headers.get("x-forwarded-for", "")
        ip_address = forwarded.split(",")[0].strip() or headers.get("x-real-ip", "").strip()
        user_agent = headers.get("user-agent", "").strip()
        return cls(ip_address=ip_address or UNKNOWN, user_agent=user_agent or UNKNOWN)
