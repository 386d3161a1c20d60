#!/usr/bin/env python3
"""
Availability Scoring - Does any slot overlap the event on its local day?

Binary: 100 when a recurring slot on the event's weekday, or a one-off slot
on the event's calendar date, overlaps the event's time range; otherwise 0.
"""

from datetime import datetime, time
from typing import Sequence, Tuple
from zoneinfo import ZoneInfo
import logging

from core.scorer.models import AvailabilityWindow
from core.utils import as_utc

logger = logging.getLogger(__name__)

AVAILABLE = 100
UNAVAILABLE = 0


def _event_local_range(start: datetime, end: datetime, tz_name: str) -> Tuple[datetime, time, time]:
    """Local start instant plus the event's time range on its start day."""
    tz = ZoneInfo(tz_name)
    local_start = as_utc(start).astimezone(tz)
    local_end = as_utc(end).astimezone(tz)

    # Multi-day events occupy the rest of the first day
    end_time = local_end.time() if local_end.date() == local_start.date() else time.max
    return local_start, local_start.time(), end_time


def _overlaps(window: AvailabilityWindow, start: time, end: time) -> bool:
    window_end = window.end_time
    # A slot ending at or before its start runs to midnight
    if window_end <= window.start_time:
        window_end = time.max
    return window.start_time < end and window_end > start


def calculate_availability_score(
    windows: Sequence[AvailabilityWindow],
    event_start: datetime,
    event_end: datetime,
    local_timezone: str = "UTC"
) -> int:
    if not windows:
        return UNAVAILABLE

    local_start, start_t, end_t = _event_local_range(event_start, event_end, local_timezone)
    event_date = local_start.date()
    event_weekday = local_start.weekday()

    for window in windows:
        if window.specific_date is not None:
            if window.specific_date != event_date:
                continue
        elif window.day_of_week is None or window.day_of_week.weekday != event_weekday:
            continue

        if _overlaps(window, start_t, end_t):
            return AVAILABLE

    return UNAVAILABLE
