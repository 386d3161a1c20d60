#!/usr/bin/env python3
"""
Reliability Models - Aggregated participation statistics.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field, asdict


@dataclass
class MonthlyTrend:
    month: str  # YYYY-MM
    events: int = 0
    hours_worked: float = 0.0
    average_rating: Optional[float] = None


@dataclass
class VolunteerStats:
    """Participation statistics derived from a volunteer's history."""
    volunteer_id: str
    total_events: int = 0
    completed_events: int = 0
    present_count: int = 0
    late_count: int = 0
    no_show_count: int = 0
    excused_count: int = 0
    total_hours: float = 0.0
    average_rating: Optional[float] = None
    attendance_rate: float = 0.0
    completion_rate: float = 0.0
    reliability_score: int = 0
    monthly_trends: List[MonthlyTrend] = field(default_factory=list)
    volunteer_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VolunteerStats":
        values = dict(data)
        values['monthly_trends'] = [MonthlyTrend(**t) for t in values.get('monthly_trends', [])]
        return cls(**values)


@dataclass
class EventSummary:
    """Participation summary for one event."""
    event_id: str
    title: str
    total_participants: int = 0
    completed_participants: int = 0
    no_shows: int = 0
    total_hours: float = 0.0
    average_rating: Optional[float] = None
    attendance_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
