#!/usr/bin/env python3
"""
Match Scoring Service - Weighted multi-factor volunteer/event scoring.

overall = round_half_up(sum(factor_score * weight) / 100)

Factors: skills, availability, location, reliability. Weights come from
MatchingConfig.weights and sum to 100.

Pure with respect to storage: callers hand in profile snapshots, so the
service can fan candidate scoring out over a thread pool.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar
import logging

from core.config_loader import MatchingConfig
from core.scorer.models import (
    VolunteerProfile, EventProfile, ScoreBreakdown, MatchResult
)
from core.scorer import skills as skill_scoring
from core.scorer import location as location_scoring
from core.scorer import availability as availability_scoring
from core.scorer import recommendations as recommendation_builder
from core.utils import round_half_up, clamp

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def _apply_filters(
    results: List[MatchResult],
    min_score: int = 0,
    limit: Optional[int] = None
) -> List[MatchResult]:
    """Drop results under min_score and truncate to limit.

    Args:
        results: Scored matches, already sorted best first
        min_score: Inclusive lower bound on match_score
        limit: Maximum results to return, None for all

    Returns:
        Filtered and truncated results
    """
    filtered = [r for r in results if r.match_score >= min_score]
    if limit is not None:
        filtered = filtered[:max(0, limit)]
    return filtered


class MatchScoringService:
    """
    Scores volunteers against events.

    Each factor is computed independently, then combined with the
    configured weights into an integer 0-100 match score with a quality
    band and recommendations.
    """

    def __init__(self, config: MatchingConfig):
        self.config = config

    def score(
        self,
        volunteer: VolunteerProfile,
        event: EventProfile,
        subject_id: Optional[str] = None
    ) -> MatchResult:
        """Score one volunteer against one event.

        Args:
            volunteer: Volunteer snapshot; reliability_score must already be resolved
            event: Event snapshot
            subject_id: Id reported on the result, defaults to the volunteer id

        Returns:
            MatchResult with breakdown, quality band and recommendations
        """
        skill_score = skill_scoring.calculate_skill_score(volunteer.skills, event.required_skills)
        availability_score = availability_scoring.calculate_availability_score(
            volunteer.availability,
            event.start,
            event.end,
            self.config.local_timezone
        )
        location_score, distance_km = location_scoring.calculate_location_score(
            volunteer.latitude,
            volunteer.longitude,
            event.latitude,
            event.longitude,
            self.config.location
        )
        reliability_score = volunteer.reliability_score
        if reliability_score is None:
            reliability_score = 0
        reliability_score = int(clamp(reliability_score, 0, 100))

        breakdown = ScoreBreakdown(
            skills=skill_score,
            availability=availability_score,
            location=location_score,
            reliability=reliability_score,
        )

        weights = self.config.weights
        weighted = (
            skill_score * weights.skills +
            availability_score * weights.availability +
            location_score * weights.location +
            reliability_score * weights.reliability
        ) / 100.0
        match_score = int(clamp(round_half_up(round(weighted, 6)), 0, 100))

        missing = skill_scoring.find_missing_required_skills(volunteer.skills, event.required_skills)
        quality = recommendation_builder.classify_match_quality(match_score, self.config.quality_bands)
        recommendations = recommendation_builder.build_recommendations(
            breakdown,
            weak_threshold=self.config.weak_factor_threshold,
            missing_required_skills=missing
        )

        logger.debug(
            f"Volunteer {volunteer.volunteer_id} x event {event.event_id}: "
            f"skills={skill_score} availability={availability_score} "
            f"location={location_score} reliability={reliability_score} -> {match_score}"
        )

        return MatchResult(
            subject_id=subject_id if subject_id is not None else volunteer.volunteer_id,
            match_score=match_score,
            score_breakdown=breakdown,
            match_quality=quality,
            recommendations=recommendations,
            missing_required_skills=missing,
            distance_km=distance_km,
            event_start=event.start,
        )

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        if self.config.max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                return list(executor.map(fn, items))
        return [fn(item) for item in items]

    def rank_volunteers(
        self,
        event: EventProfile,
        volunteers: Sequence[VolunteerProfile],
        min_score: int = 0,
        limit: Optional[int] = None
    ) -> List[MatchResult]:
        """Score every volunteer for an event.

        Returns:
            Results sorted by match_score (highest first), ties by volunteer id
        """
        results = self._map(lambda v: self.score(v, event), volunteers)
        results.sort(key=lambda r: (-r.match_score, str(r.subject_id)))
        return _apply_filters(results, min_score, limit)

    def rank_events(
        self,
        volunteer: VolunteerProfile,
        events: Sequence[EventProfile],
        min_score: int = 0,
        limit: Optional[int] = None
    ) -> List[MatchResult]:
        """Score one volunteer against many events.

        Returns:
            Results sorted by match_score (highest first), ties by earlier start
        """
        results = self._map(lambda e: self.score(volunteer, e, subject_id=e.event_id), events)
        results.sort(key=lambda r: (-r.match_score, r.event_start, str(r.subject_id)))
        return _apply_filters(results, min_score, limit)
