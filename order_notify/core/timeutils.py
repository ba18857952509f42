"""Timezone helpers. All stored timestamps are UTC-aware."""

from datetime import datetime, timezone
from typing import Callable, Optional

import pytz

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_day_start(now: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Midnight of ``now``'s local calendar day, as a UTC datetime."""
    local = now.astimezone(tz)
    midnight = tz.localize(datetime(local.year, local.month, local.day))
    return midnight.astimezone(timezone.utc)
