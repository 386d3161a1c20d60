"""Matcher Module - Repository-backed volunteer/event match queries."""
from core.matcher.dto import volunteer_to_profile, event_to_profile
from core.matcher.service import MatchingService

__all__ = ['MatchingService', 'volunteer_to_profile', 'event_to_profile']
