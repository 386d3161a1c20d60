#!/usr/bin/env python3
"""
Reliability Calculations - Pure functions over history records.

reliability = attendance_weight * attendance_rate
            + completion_weight * completion_rate
            - no_show_penalty * no_shows
            + experience_bonus for each experience threshold reached

clamped to [0, 100] and rounded half-up. Volunteers with no history get
the configured default score.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Any, Dict
import logging

from core.config_loader import ReliabilityConfig
from core.enums import ParticipationStatus, AttendanceType
from core.reliability.models import VolunteerStats, MonthlyTrend
from core.utils import as_utc, clamp, round_half_up

logger = logging.getLogger(__name__)


def calculate_reliability_score(
    total: int,
    present: int,
    completed: int,
    no_shows: int,
    config: ReliabilityConfig
) -> int:
    if total <= 0:
        return config.default_score

    attendance_rate = present / total * 100
    completion_rate = completed / total * 100

    score = config.attendance_weight * attendance_rate + config.completion_weight * completion_rate
    score -= config.no_show_penalty * no_shows
    for threshold in config.experience_thresholds:
        if total >= threshold:
            score += config.experience_bonus

    return int(clamp(round_half_up(round(score, 6)), 0, 100))


def months_ago(now: datetime, months: int) -> datetime:
    """Same day-of-month `months` back, clamped to the month's length."""
    year = now.year
    month = now.month - months
    while month <= 0:
        month += 12
        year -= 1
    day = now.day
    while True:
        try:
            return now.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def calculate_monthly_trends(
    records: Iterable[Any],
    since: Optional[datetime] = None
) -> List[MonthlyTrend]:
    """Group completed records by calendar month of participation (UTC)."""
    buckets: Dict[str, Dict[str, Any]] = {}
    for record in records:
        if ParticipationStatus.parse(record.status) != ParticipationStatus.COMPLETED:
            continue
        participated = as_utc(record.participation_date)
        if since is not None and participated < as_utc(since):
            continue

        key = participated.strftime('%Y-%m')
        bucket = buckets.setdefault(key, {'events': 0, 'hours': 0.0, 'ratings': []})
        bucket['events'] += 1
        bucket['hours'] += float(record.hours_worked or 0)
        if record.performance_rating is not None:
            bucket['ratings'].append(record.performance_rating)

    return [
        MonthlyTrend(
            month=key,
            events=bucket['events'],
            hours_worked=round(bucket['hours'], 2),
            average_rating=_mean(bucket['ratings']),
        )
        for key, bucket in sorted(buckets.items())
    ]


def compute_volunteer_stats(
    volunteer_id: Any,
    records: Iterable[Any],
    config: ReliabilityConfig,
    now: Optional[datetime] = None
) -> VolunteerStats:
    """
    Aggregate a volunteer's history records.

    Records need status, attendance, hours_worked, performance_rating and
    participation_date attributes; legacy status spellings are accepted.
    """
    records = list(records)
    total = len(records)

    completed = [r for r in records if ParticipationStatus.parse(r.status) == ParticipationStatus.COMPLETED]
    attendance = [AttendanceType.parse(r.attendance) for r in records]
    present = sum(1 for a in attendance if a == AttendanceType.PRESENT)
    late = sum(1 for a in attendance if a == AttendanceType.LATE)
    excused = sum(1 for a in attendance if a == AttendanceType.EXCUSED)
    no_shows = sum(1 for r in records if ParticipationStatus.parse(r.status) == ParticipationStatus.NO_SHOW)

    total_hours = round(sum(float(r.hours_worked or 0) for r in completed), 2)
    ratings = [r.performance_rating for r in completed if r.performance_rating is not None]

    attendance_rate = present / total * 100 if total else 0.0
    completion_rate = len(completed) / total * 100 if total else 0.0

    since = months_ago(as_utc(now), config.trend_months) if now is not None else None

    return VolunteerStats(
        volunteer_id=str(volunteer_id),
        total_events=total,
        completed_events=len(completed),
        present_count=present,
        late_count=late,
        no_show_count=no_shows,
        excused_count=excused,
        total_hours=total_hours,
        average_rating=_mean(ratings),
        attendance_rate=round(attendance_rate, 2),
        completion_rate=round(completion_rate, 2),
        reliability_score=calculate_reliability_score(total, present, len(completed), no_shows, config),
        monthly_trends=calculate_monthly_trends(records, since),
    )
