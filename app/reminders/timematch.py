from datetime import datetime, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .config import settings


def resolve_timezone(tz_name: Optional[str], default: Optional[str] = None) -> ZoneInfo:
    """Return the ZoneInfo for tz_name, or the default zone if missing/unknown."""
    fallback = default or settings.DEFAULT_TIMEZONE
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except Exception:
            # unknown keys, malformed paths, tzdata directories ("America")
            pass
    return ZoneInfo(fallback)


def to_utc_aware(dt: datetime) -> datetime:
    """Naive datetimes are assumed UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def local_hhmm(instant: datetime, tz_name: Optional[str], default: Optional[str] = None) -> str:
    """Local wall clock of ``instant`` in ``tz_name`` as zero-padded 24h "HH:MM"."""
    local = to_utc_aware(instant).astimezone(resolve_timezone(tz_name, default))
    return f"{local.hour:02d}:{local.minute:02d}"


def is_due(instant: datetime, tz_name: Optional[str], schedule_time: str, default: Optional[str] = None) -> bool:
    return local_hhmm(instant, tz_name, default) == schedule_time
