"""Date and time helpers"""

from datetime import datetime, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def split_date_time(value: str) -> Tuple[str, str]:
    """Split "10/02/2026 00:06:00" into ("10/02/2026", "00:06:00"), keeping both opaque"""
    date_part, _, time_part = (value or "").strip().partition(" ")
    return date_part, time_part.strip()
