#!/usr/bin/env python3
"""
Matching Service - Repository-backed match queries.

Loads volunteers and events through the repository, resolves reliability
from the aggregator cache, and hands plain profiles to MatchScoringService.
Queries never mutate state.
"""

from typing import Any, Dict, List, Optional
import logging

from core.config_loader import MatchingConfig
from core.enums import ACTIVE_ASSIGNMENT_STATUSES, AssignmentStatus
from core.exceptions import NotFoundException, ValidationException
from core.matcher.dto import volunteer_to_profile, event_to_profile
from core.reliability import ReliabilityAggregator
from core.scorer import MatchScoringService, MatchResult
from core.utils import Clock, utc_now
from database.repository import VolunteerRepository

logger = logging.getLogger(__name__)

AUTO_CONFIRM_SCORE = 80

_ACTIVE = [s.value for s in ACTIVE_ASSIGNMENT_STATUSES]


def _validate_query(limit: Optional[int], min_score: int) -> None:
    if limit is not None and limit < 0:
        raise ValidationException(f"limit must be non-negative (got {limit})")
    if not 0 <= min_score <= 100:
        raise ValidationException(f"min_score must be within 0-100 (got {min_score})")


class MatchingService:
    """
    Ranks volunteers for events and events for volunteers.

    Suggestions and optimisation helpers build on the same two rankings.
    """

    def __init__(
        self,
        repo: VolunteerRepository,
        config: MatchingConfig,
        reliability: ReliabilityAggregator,
        scorer: Optional[MatchScoringService] = None,
        clock: Clock = utc_now
    ):
        self.repo = repo
        self.config = config
        self.reliability = reliability
        self.scorer = scorer or MatchScoringService(config)
        self.clock = clock

    def _require_event(self, event_id: Any):
        event = self.repo.find_event(event_id)
        if event is None:
            raise NotFoundException("Event", event_id)
        return event

    def _require_volunteer(self, volunteer_id: Any):
        volunteer = self.repo.find_volunteer(volunteer_id)
        if volunteer is None:
            raise NotFoundException("Volunteer", volunteer_id)
        return volunteer

    def _profile(self, volunteer):
        return volunteer_to_profile(volunteer, self.reliability.get_reliability_score(volunteer.id))

    def find_volunteers_for_event(
        self,
        event_id: Any,
        limit: Optional[int] = None,
        min_score: int = 0,
        include_assigned: bool = False
    ) -> List[MatchResult]:
        """Rank active volunteers for an event.

        Args:
            event_id: Event to staff
            limit: Maximum results (defaults to matching.default_volunteer_limit)
            min_score: Inclusive lower bound on match_score
            include_assigned: Keep volunteers already pending/confirmed for the event

        Returns:
            MatchResults sorted by score descending, ties by volunteer id
        """
        if limit is None:
            limit = self.config.default_volunteer_limit
        _validate_query(limit, min_score)

        event = self._require_event(event_id)
        event_profile = event_to_profile(event)

        assigned = set()
        if not include_assigned:
            assigned = {str(a.volunteer_id) for a in self.repo.list_active_assignments(event.id)}

        profiles = [
            self._profile(v)
            for v in self.repo.list_active_volunteers()
            if str(v.id) not in assigned
        ]

        results = self.scorer.rank_volunteers(event_profile, profiles, min_score=min_score, limit=limit)
        logger.info(f"Ranked {len(profiles)} volunteers for event {event.id}, returning {len(results)}")
        return results

    def find_events_for_volunteer(
        self,
        volunteer_id: Any,
        limit: Optional[int] = None,
        min_score: int = 0
    ) -> List[MatchResult]:
        """Rank open events for a volunteer.

        Only published events that have not ended, have open spots and do
        not already hold an active assignment for the volunteer are scored.

        Returns:
            MatchResults (subject_id = event id) sorted by score descending,
            ties by earlier start
        """
        if limit is None:
            limit = self.config.default_event_limit
        _validate_query(limit, min_score)

        volunteer = self._require_volunteer(volunteer_id)
        profile = self._profile(volunteer)

        assigned_events = {
            str(a.event_id)
            for a in self.repo.list_assignments_for_volunteer(volunteer.id, statuses=_ACTIVE)
        }
        events = [
            event_to_profile(e)
            for e in self.repo.list_open_events(self.clock())
            if str(e.id) not in assigned_events
        ]

        results = self.scorer.rank_events(profile, events, min_score=min_score, limit=limit)
        logger.info(f"Ranked {len(events)} events for volunteer {volunteer.id}, returning {len(results)}")
        return results

    def calculate_match(self, volunteer_id: Any, event_id: Any) -> MatchResult:
        """Score a single volunteer/event pair."""
        volunteer = self._require_volunteer(volunteer_id)
        event = self._require_event(event_id)
        return self.scorer.score(self._profile(volunteer), event_to_profile(event))

    def get_automatic_suggestions(
        self,
        min_score: Optional[int] = None,
        max_per_event: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Top candidates for every published event that still needs volunteers.

        Events are visited by urgency (highest first), then by open spots.
        A failure on one event is logged and that event skipped.
        """
        if min_score is None:
            min_score = self.config.suggestion_min_score
        if max_per_event is None:
            max_per_event = self.config.suggestions_per_event
        _validate_query(max_per_event, min_score)

        events = [event_to_profile(e) for e in self.repo.list_open_events(self.clock())]
        events = [e for e in events if e.spots_needed > 0]
        events.sort(key=lambda e: (-e.urgency.rank, -e.spots_needed, e.start, e.event_id))

        suggestions = []
        for event in events:
            try:
                matches = self.find_volunteers_for_event(
                    event.event_id,
                    limit=max_per_event,
                    min_score=min_score
                )
            except Exception as e:
                logger.error(f"Failed to build suggestions for event {event.event_id}: {e}")
                continue

            if not matches:
                continue

            suggestions.append({
                'event_id': event.event_id,
                'event_title': event.title,
                'urgency': event.urgency.value,
                'spots_needed': event.spots_needed,
                'suggestions': [m.to_dict() for m in matches],
            })

        logger.info(f"Built suggestions for {len(suggestions)} of {len(events)} open events")
        return suggestions

    def optimize_assignments(
        self,
        event_id: Any,
        max_assignments: Optional[int] = None,
        preserve_confirmed: bool = True
    ) -> Dict[str, Any]:
        """Propose the best candidates for an event's open slots.

        Args:
            event_id: Event to staff
            max_assignments: Cap on proposals, defaults to every open slot
            preserve_confirmed: Keep confirmed volunteers and only fill the
                remaining slots; when False every slot is re-proposed and
                currently assigned volunteers are candidates too

        Returns:
            Dict with available_slots, total_slots_available and
            recommended_assignments; nothing is persisted
        """
        if max_assignments is not None and max_assignments < 0:
            raise ValidationException(f"max_assignments must be non-negative (got {max_assignments})")

        event = self._require_event(event_id)
        confirmed = len(self.repo.list_assignments_for_event(event.id, statuses=[AssignmentStatus.CONFIRMED.value]))
        total_slots_available = max(0, event.max_volunteers - confirmed)

        available = total_slots_available if preserve_confirmed else event.max_volunteers
        if available == 0:
            return {
                'event_id': str(event.id),
                'message': 'Event is at capacity',
                'available_slots': 0,
                'total_slots_available': total_slots_available,
                'recommended_assignments': [],
            }

        wanted = available if max_assignments is None else min(available, max_assignments)
        candidates = self.find_volunteers_for_event(
            event.id,
            limit=wanted,
            min_score=0,
            include_assigned=not preserve_confirmed
        )

        recommended = [
            {
                'volunteer_id': c.subject_id,
                'match_score': c.match_score,
                'match_quality': c.match_quality,
                'suggested_status': (
                    AssignmentStatus.CONFIRMED.value if c.match_score >= AUTO_CONFIRM_SCORE
                    else AssignmentStatus.PENDING.value
                ),
                'recommendations': list(c.recommendations),
            }
            for c in candidates
        ]

        return {
            'event_id': str(event.id),
            'message': f"Proposed {len(recommended)} of {available} open slots",
            'available_slots': available,
            'total_slots_available': total_slots_available,
            'recommended_assignments': recommended,
        }

    def get_matching_stats(self) -> Dict[str, Any]:
        """Totals over confirmed assignments and the current pool."""
        confirmed = self.repo.list_confirmed_assignments()
        scored = [a.match_score for a in confirmed if a.match_score is not None]
        open_events = self.repo.list_open_events(self.clock())

        return {
            'total_confirmed_assignments': len(confirmed),
            'average_match_score': round(sum(scored) / len(scored), 2) if scored else 0,
            'active_volunteers': len(self.repo.list_active_volunteers()),
            'open_events': len(open_events),
            'open_slots': sum(max(0, e.max_volunteers - (e.current_volunteers or 0)) for e in open_events),
        }
