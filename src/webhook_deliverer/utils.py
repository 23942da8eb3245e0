"""Identifier and time helpers shared by the formatter and pipeline."""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone

__all__ = [
    "DATETIME3_FORMAT",
    "elapsed_ms",
    "generate_log_id",
    "mysql_datetime3_timestamp",
]

DATETIME3_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_log_id() -> str:
    """Generate a unique log item ID."""
    return f"log_{secrets.token_hex(12)}"


def mysql_datetime3_timestamp(now: datetime | None = None) -> str:
    """Format a UTC timestamp as MySQL ``DATETIME(3)``.

    The output is fixed width (``YYYY-MM-DD HH:MM:SS.mmm``) so string order
    matches time order.

    Args:
        now: Time to format (defaults to current UTC time). Naive values
            are taken as UTC.

    Returns:
        Timestamp string with millisecond precision
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.strftime(DATETIME3_FORMAT)}.{now.microsecond // 1000:03d}"


def elapsed_ms(start: float) -> int:
    """Whole milliseconds since ``start``, a ``time.monotonic()`` reading."""
    return max(0, int((time.monotonic() - start) * 1000))
