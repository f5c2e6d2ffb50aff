# src/cloudsim/scripts/sweep_otps.py
"""
Cron job removing one-time passcodes that can no longer verify.

Run it when the in-process sweep worker is disabled
(``OTP_SWEEP_INTERVAL_SECONDS=0``), e.g. every 15 minutes.
"""

from cloudsim.core.log_config import configure_logging
from cloudsim.services.otp_sweep import sweep_once


def main() -> int:
    configure_logging()
    removed = sweep_once()
    print(f"Removed {removed} expired or used OTP records")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
