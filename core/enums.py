#!/usr/bin/env python3
"""
Canonical enum types for volunteers, events, assignments and history.

Stored values are lowercase snake_case. Anything coming from outside
(config files, CLI arguments, legacy rows written as 'NO_SHOW' or
'no-show') goes through ``parse()`` so the core never compares raw strings.
"""

from enum import Enum
from typing import Any, Dict, Type, TypeVar

from core.exceptions import ValidationException

E = TypeVar('E', bound='NormalizedEnum')


def _normalize_token(value: str) -> str:
    return value.strip().lower().replace('-', '_').replace(' ', '_')


class NormalizedEnum(str, Enum):
    """String enum that accepts any casing / separator on input."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def parse(cls: Type[E], value: Any) -> E:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationException(f"Invalid {cls.__name__}: {value!r}")

        token = _normalize_token(value)
        token = cls._aliases().get(token, token)
        try:
            return cls(token)
        except ValueError:
            allowed = ', '.join(m.value for m in cls)
            raise ValidationException(
                f"Invalid {cls.__name__}: {value!r}. Must be one of: {allowed}"
            ) from None

    def __str__(self) -> str:
        return self.value


class Proficiency(NormalizedEnum):
    BEGINNER = 'beginner'
    INTERMEDIATE = 'intermediate'
    ADVANCED = 'advanced'
    EXPERT = 'expert'

    @property
    def rank(self) -> int:
        return _PROFICIENCY_RANK[self]


_PROFICIENCY_RANK = {
    Proficiency.BEGINNER: 1,
    Proficiency.INTERMEDIATE: 2,
    Proficiency.ADVANCED: 3,
    Proficiency.EXPERT: 4,
}


class UrgencyLevel(NormalizedEnum):
    LOW = 'low'
    NORMAL = 'normal'
    HIGH = 'high'
    URGENT = 'urgent'

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {'medium': 'normal', 'critical': 'urgent'}

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]


_URGENCY_RANK = {
    UrgencyLevel.LOW: 1,
    UrgencyLevel.NORMAL: 2,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.URGENT: 4,
}


class EventStatus(NormalizedEnum):
    DRAFT = 'draft'
    PUBLISHED = 'published'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AssignmentStatus(NormalizedEnum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    DECLINED = 'declined'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


# Assignments that hold a place at the event (check-in, finalize, match exclusion)
ACTIVE_ASSIGNMENT_STATUSES = frozenset({AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED})


class ParticipationStatus(NormalizedEnum):
    REGISTERED = 'registered'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    NO_SHOW = 'no_show'
    CANCELLED = 'cancelled'
    LEFT_EARLY = 'left_early'


class AttendanceType(NormalizedEnum):
    PENDING = 'pending'
    PRESENT = 'present'
    LATE = 'late'
    ABSENT = 'absent'
    EXCUSED = 'excused'


CHECKED_IN_ATTENDANCE = frozenset({AttendanceType.PRESENT, AttendanceType.LATE})


class DayOfWeek(NormalizedEnum):
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'
    SUNDAY = 'sunday'

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {m.value[:3]: m.value for m in cls}

    @property
    def weekday(self) -> int:
        """Index matching ``datetime.weekday()`` (Monday == 0)."""
        return list(DayOfWeek).index(self)


class NotificationType(NormalizedEnum):
    ASSIGNMENT = 'assignment'
    REMINDER = 'reminder'
    EVENT_UPDATE = 'event_update'
    MATCHING_SUGGESTION = 'matching_suggestion'
    ANNOUNCEMENT = 'announcement'
    ATTENDANCE = 'attendance'
    SYSTEM = 'system'
