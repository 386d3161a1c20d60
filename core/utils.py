import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positive values."""
    return int(math.floor(value + 0.5))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def calculate_hours_worked(start: datetime, end: datetime) -> float:
    """Hours between two instants, rounded to 2 dp, never negative."""
    delta = as_utc(end) - as_utc(start)
    hours = delta.total_seconds() / 3600.0
    return max(0.0, round(hours, 2))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (math.sin(d_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
