from core.reliability.models import VolunteerStats, MonthlyTrend, EventSummary
from core.reliability.calculations import calculate_reliability_score, compute_volunteer_stats
from core.reliability.service import ReliabilityAggregator

__all__ = [
    'ReliabilityAggregator',
    'VolunteerStats',
    'MonthlyTrend',
    'EventSummary',
    'calculate_reliability_score',
    'compute_volunteer_stats',
]
