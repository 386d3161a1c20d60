#!/usr/bin/env python3
"""
Scoring Models - Data structures for match scoring inputs and results.

Profiles are plain snapshots decoupled from the ORM so scorers stay pure
and can run in worker threads.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import date, datetime, time

from core.enums import Proficiency, DayOfWeek, EventStatus, UrgencyLevel
from core.exceptions import ValidationException


@dataclass(frozen=True)
class SkillProficiency:
    """A skill held by a volunteer."""
    skill_id: str
    proficiency: Proficiency
    name: Optional[str] = None


@dataclass(frozen=True)
class RequiredSkill:
    """A skill an event asks for."""
    skill_id: str
    min_proficiency: Proficiency
    is_required: bool = True
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RequiredSkill':
        skill_id = data.get('skill_id')
        if skill_id is None or str(skill_id).strip() == '':
            raise ValidationException("Required skill entry is missing skill_id")
        return cls(
            skill_id=str(skill_id),
            min_proficiency=Proficiency.parse(data.get('min_proficiency', 'beginner')),
            is_required=bool(data.get('is_required', True)),
            name=data.get('name'),
        )


@dataclass(frozen=True)
class AvailabilityWindow:
    """
    A recurring weekly slot (day_of_week) or a one-off slot (specific_date).
    """
    start_time: time
    end_time: time
    day_of_week: Optional[DayOfWeek] = None
    specific_date: Optional[date] = None

    @property
    def is_recurring(self) -> bool:
        return self.specific_date is None


@dataclass
class VolunteerProfile:
    volunteer_id: str
    skills: List[SkillProficiency] = field(default_factory=list)
    availability: List[AvailabilityWindow] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    reliability_score: Optional[int] = None
    is_active: bool = True
    name: Optional[str] = None


@dataclass
class EventProfile:
    event_id: str
    start: datetime
    end: datetime
    required_skills: List[RequiredSkill] = field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    status: EventStatus = EventStatus.PUBLISHED
    max_volunteers: int = 1
    current_volunteers: int = 0
    title: str = ""

    @property
    def spots_needed(self) -> int:
        return max(0, self.max_volunteers - self.current_volunteers)


@dataclass
class ScoreBreakdown:
    """Per-factor scores, each 0-100."""
    skills: int = 0
    availability: int = 0
    location: int = 0
    reliability: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'skills': self.skills,
            'availability': self.availability,
            'location': self.location,
            'reliability': self.reliability,
        }


@dataclass
class MatchResult:
    """Ranked match between a volunteer and an event.

    subject_id is the volunteer id when ranking volunteers for an event and
    the event id when ranking events for a volunteer.
    """
    subject_id: str
    match_score: int
    score_breakdown: ScoreBreakdown
    match_quality: str
    recommendations: List[str] = field(default_factory=list)
    missing_required_skills: List[str] = field(default_factory=list)
    distance_km: Optional[float] = None
    event_start: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subject_id': self.subject_id,
            'match_score': self.match_score,
            'score_breakdown': self.score_breakdown.to_dict(),
            'match_quality': self.match_quality,
            'recommendations': list(self.recommendations),
            'missing_required_skills': list(self.missing_required_skills),
            'distance_km': round(self.distance_km, 2) if self.distance_km is not None else None,
        }
