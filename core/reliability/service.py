#!/usr/bin/env python3
"""
Reliability Aggregator - Participation statistics and reliability scores.

Stats are recomputed from history on demand and memoised in the shared
Redis ReliabilityCache. Every history write (check-in, check-out, override,
no-show, finalize) invalidates the affected volunteer's entry.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional
import logging
import math

from core.cache import ReliabilityCache
from core.config_loader import ReliabilityConfig
from core.enums import ParticipationStatus, AttendanceType
from core.exceptions import NotFoundException, ValidationException
from core.reliability.calculations import compute_volunteer_stats
from core.reliability.models import VolunteerStats, EventSummary
from core.utils import Clock, as_utc, utc_now
from database.repository import VolunteerRepository

logger = logging.getLogger(__name__)

SORT_FIELDS = ('total_hours', 'reliability_score')
HISTORY_FILTERS = ('status', 'start_date', 'end_date')


class ReliabilityAggregator:
    """
    Derives attendance/completion rates, reliability scores, monthly
    trends and event summaries from volunteer history.
    """

    def __init__(
        self,
        repo: VolunteerRepository,
        config: ReliabilityConfig,
        cache: Optional[ReliabilityCache] = None,
        clock: Clock = utc_now
    ):
        self.repo = repo
        self.config = config
        self.cache = cache if cache is not None else ReliabilityCache()
        self.clock = clock

    def invalidate(self, volunteer_id: Optional[Any] = None) -> None:
        self.cache.invalidate(volunteer_id)

    def _compute(self, volunteer_id: Any) -> VolunteerStats:
        records = self.repo.list_history_for_volunteer(volunteer_id)
        return compute_volunteer_stats(volunteer_id, records, self.config, now=self.clock())

    def get_volunteer_stats(self, volunteer_id: Any) -> VolunteerStats:
        """Stats for one volunteer, served from cache when fresh.

        Raises:
            NotFoundException: If the volunteer does not exist
        """
        cached = self.cache.get(volunteer_id)
        if cached is not None:
            return VolunteerStats.from_dict(cached)

        # Read before the history so a concurrent write makes set() a no-op
        generation = self.cache.generation(volunteer_id)

        volunteer = self.repo.find_volunteer(volunteer_id)
        if volunteer is None:
            raise NotFoundException("Volunteer", volunteer_id)

        stats = self._compute(volunteer_id)
        stats.volunteer_name = volunteer.name
        self.cache.set(volunteer_id, stats.to_dict(), generation)
        return stats

    def get_reliability_score(self, volunteer_id: Any) -> int:
        """Reliability score (0-100) used as a match factor."""
        return self.get_volunteer_stats(volunteer_id).reliability_score

    def get_performance_metrics(self, volunteer_id: Any) -> Dict[str, Any]:
        stats = self.get_volunteer_stats(volunteer_id)
        return {
            'volunteer_id': stats.volunteer_id,
            'volunteer_name': stats.volunteer_name,
            'overall_stats': stats.to_dict(),
            'monthly_trends': [t.__dict__.copy() for t in stats.monthly_trends],
            'period_months': self.config.trend_months,
        }

    def refresh_reliability_score(self, volunteer_id: Any) -> int:
        """Recompute and store the derived score on the volunteer row.

        The caller's unit of work commits the change.
        """
        volunteer = self.repo.find_volunteer(volunteer_id)
        if volunteer is None:
            raise NotFoundException("Volunteer", volunteer_id)

        self.cache.invalidate(volunteer_id)
        stats = self.get_volunteer_stats(volunteer_id)
        self.repo.update_reliability_score(volunteer, stats.reliability_score)
        return stats.reliability_score

    def get_all_volunteer_stats(self, sort_by: str = 'total_hours') -> Dict[str, Any]:
        """Stats for every volunteer plus a summary block.

        Args:
            sort_by: 'total_hours' or 'reliability_score', both descending

        Returns:
            {'volunteers': [...], 'summary': {...}}
        """
        if sort_by not in SORT_FIELDS:
            raise ValidationException(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")

        all_stats: List[VolunteerStats] = [
            self.get_volunteer_stats(v.id) for v in self.repo.list_all_volunteers()
        ]
        all_stats.sort(key=lambda s: (-getattr(s, sort_by), s.volunteer_id))

        count = len(all_stats)
        summary = {
            'total_volunteers': count,
            'total_events': sum(s.total_events for s in all_stats),
            'total_hours': round(sum(s.total_hours for s in all_stats), 2),
            'average_reliability': round(sum(s.reliability_score for s in all_stats) / count, 2) if count else 0,
        }
        return {'volunteers': [s.to_dict() for s in all_stats], 'summary': summary}

    def get_event_summary(self, event_id: Any) -> EventSummary:
        """Participants, completions, hours, average rating and attendance rate for an event."""
        event = self.repo.find_event(event_id)
        if event is None:
            raise NotFoundException("Event", event_id)

        records = self.repo.list_history_for_event(event_id)
        completed = [r for r in records if ParticipationStatus.parse(r.status) == ParticipationStatus.COMPLETED]
        no_shows = [r for r in records if ParticipationStatus.parse(r.status) == ParticipationStatus.NO_SHOW]
        present = [r for r in records if AttendanceType.parse(r.attendance) == AttendanceType.PRESENT]
        ratings = [r.performance_rating for r in completed if r.performance_rating is not None]

        total = len(records)
        return EventSummary(
            event_id=str(event.id),
            title=event.title,
            total_participants=total,
            completed_participants=len(completed),
            no_shows=len(no_shows),
            total_hours=round(sum(float(r.hours_worked or 0) for r in completed), 2),
            average_rating=round(sum(ratings) / len(ratings), 2) if ratings else None,
            attendance_rate=round(len(present) / total * 100, 2) if total else 0.0,
        )

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """Admin dashboard: overall totals, recent activity and the most reliable volunteers."""
        all_stats = self.get_all_volunteer_stats(sort_by='reliability_score')
        records = self.repo.list_all_history()

        since = as_utc(self.clock()) - timedelta(days=self.config.recent_activity_days)
        recent = [r for r in records if as_utc(r.participation_date) >= since]

        def completed_hours(rows) -> float:
            return round(sum(
                float(r.hours_worked or 0) for r in rows
                if ParticipationStatus.parse(r.status) == ParticipationStatus.COMPLETED
            ), 2)

        top = all_stats['volunteers'][:self.config.top_performers]
        return {
            'overview': {
                'total_volunteers': all_stats['summary']['total_volunteers'],
                'total_events': len({r.event_id for r in records}),
                'total_hours': completed_hours(records),
                'average_reliability': all_stats['summary']['average_reliability'],
            },
            'recent_activity': {
                'days': self.config.recent_activity_days,
                'participations': len(recent),
                'completed': sum(
                    1 for r in recent if ParticipationStatus.parse(r.status) == ParticipationStatus.COMPLETED
                ),
                'hours': completed_hours(recent),
            },
            'top_performers': [
                {
                    'volunteer_id': s['volunteer_id'],
                    'name': s['volunteer_name'],
                    'reliability_score': s['reliability_score'],
                    'total_hours': s['total_hours'],
                    'completed_events': s['completed_events'],
                }
                for s in top
            ],
        }

    def list_volunteer_history(
        self,
        volunteer_id: Any,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """One page of a volunteer's participation, newest first.

        Pending and confirmed assignments with no history yet are listed
        alongside the history rows, dated at their event's start.

        Args:
            filters: optional 'status', 'start_date' and 'end_date'
                (inclusive, on participation date)

        Returns:
            {'history': [...], 'pagination': {page, limit, total, total_pages, has_more}}

        Raises:
            NotFoundException: Unknown volunteer
            ValidationException: Unknown filter, bad status or paging values
        """
        filters = dict(filters or {})
        unknown = set(filters) - set(HISTORY_FILTERS)
        if unknown:
            raise ValidationException(f"Unknown history filters: {', '.join(sorted(unknown))}")
        if page < 1 or limit < 1:
            raise ValidationException("page and limit must be positive")

        status = filters.get('status')
        if status is not None:
            status = ParticipationStatus.parse(status).value
        start_date = as_utc(filters['start_date']) if filters.get('start_date') else None
        end_date = as_utc(filters['end_date']) if filters.get('end_date') else None

        if self.repo.find_volunteer(volunteer_id) is None:
            raise NotFoundException("Volunteer", volunteer_id)

        records = self.repo.list_history_for_volunteer(
            volunteer_id, status=status, start_date=start_date, end_date=end_date
        )
        rows = [_history_row(r) for r in records]

        recorded = {r.event_id for r in self.repo.list_history_for_volunteer(volunteer_id)}
        for assignment in self.repo.list_assignments_for_volunteer(volunteer_id, statuses=['pending', 'confirmed']):
            if assignment.event_id in recorded:
                continue
            row = _assignment_row(assignment)
            if status is not None and row['status'] != status:
                continue
            if start_date is not None and row['participation_date'] < start_date:
                continue
            if end_date is not None and row['participation_date'] > end_date:
                continue
            rows.append(row)

        rows.sort(key=lambda r: (r['participation_date'], r['event_id']), reverse=True)

        total = len(rows)
        offset = (page - 1) * limit
        return {
            'history': rows[offset:offset + limit],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': math.ceil(total / limit),
                'has_more': offset + limit < total,
            },
        }


def _history_row(record) -> Dict[str, Any]:
    return {
        'id': str(record.id),
        'source': 'history',
        'event_id': str(record.event_id),
        'event_title': record.event.title if record.event is not None else None,
        'assignment_id': str(record.assignment_id) if record.assignment_id else None,
        'status': record.status,
        'attendance': record.attendance,
        'hours_worked': float(record.hours_worked or 0),
        'performance_rating': record.performance_rating,
        'participation_date': as_utc(record.participation_date),
        'completion_date': as_utc(record.completion_date) if record.completion_date else None,
    }


def _assignment_row(assignment) -> Dict[str, Any]:
    return {
        'id': str(assignment.id),
        'source': 'assignment',
        'event_id': str(assignment.event_id),
        'event_title': assignment.event.title,
        'assignment_id': str(assignment.id),
        'status': assignment.status,
        'attendance': AttendanceType.PENDING.value,
        'hours_worked': 0.0,
        'performance_rating': None,
        'participation_date': as_utc(assignment.event.start_date),
        'completion_date': None,
    }
