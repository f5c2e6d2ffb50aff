"""Fingerprints of one-time passcodes.

Two schemes exist. ``legacy`` reproduces the 32-bit rolling string hash that
existing records were written with; it is deterministic but has a tiny
search space and is not a security primitive. ``blake3`` is a keyed digest
salted with the subject, so equal codes for different users never share a
fingerprint.
"""

from __future__ import annotations

from typing import Literal

from cloudsim.core.settings import settings
from cloudsim.utils.hash import blake3_keyed_hexdigest

FingerprintScheme = Literal["legacy", "blake3"]

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def legacy_fingerprint(code: str) -> str:
    """Return the signed 32-bit rolling hash of ``code`` in base 16.

    >>> legacy_fingerprint("123456")
    '56760663'
    """
    h = 0
    for ch in code:
        h = _to_int32((h << 5) - h + ord(ch))
    return f"-{-h:x}" if h < 0 else f"{h:x}"


def blake3_fingerprint(code: str, subject: str, secret: str) -> str:
    return blake3_keyed_hexdigest(secret, f"{subject}|{code}".encode())


class CodeHasher:
    """Fingerprint codes with the configured scheme."""

    def __init__(
        self,
        scheme: FingerprintScheme | None = None,
        secret: str | None = None,
    ) -> None:
        self.scheme: FingerprintScheme = scheme or settings.otp_fingerprint_scheme
        self._secret = secret or settings.secret_key
        if self.scheme not in ("legacy", "blake3"):
            raise ValueError(f"Unknown fingerprint scheme: {self.scheme}")

    def fingerprint(self, code: str, subject: str | None = None) -> str:
        if self.scheme == "legacy":
            return legacy_fingerprint(code)
        if not subject:
            raise ValueError("The blake3 scheme needs a subject")
        return blake3_fingerprint(code, subject, self._secret)


def get_code_hasher() -> CodeHasher:
    """Return a hasher honouring ``OTP_FINGERPRINT_SCHEME``."""
    return CodeHasher()
