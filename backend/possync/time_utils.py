from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional


def now_ms() -> int:
    """Device 'now' as epoch milliseconds (the unit of every updated_at)."""
    return int(time.time() * 1000)


def ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Epoch milliseconds -> UTC-naive datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)


def to_utc_z(value) -> Optional[str]:
    """
    Serializes a datetime or epoch milliseconds to ISO-8601 with trailing 'Z'.
    If a datetime is naive, it is treated as UTC.
    """
    if value is None:
        return None
    if isinstance(value, int):
        value = ms_to_datetime(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    dt_utc = value.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
