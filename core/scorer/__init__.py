#!/usr/bin/env python3
"""
Scoring Module - Weighted volunteer/event match scoring.

Public API:
- MatchScoringService: Combines factor scores into a ranked MatchResult
- MatchResult, ScoreBreakdown: Result dataclasses

Modules:

- models.py: Profile snapshots and result dataclasses
- skills.py: Skill compatibility score
- availability.py: Availability overlap score
- location.py: Distance falloff score
- recommendations.py: Quality bands and recommendation text
- service.py: MatchScoringService orchestrator
"""

from core.scorer.models import (
    MatchResult, ScoreBreakdown, VolunteerProfile, EventProfile,
    SkillProficiency, RequiredSkill, AvailabilityWindow,
)
from core.scorer.service import MatchScoringService

__all__ = [
    'MatchScoringService',
    'MatchResult',
    'ScoreBreakdown',
    'VolunteerProfile',
    'EventProfile',
    'SkillProficiency',
    'RequiredSkill',
    'AvailabilityWindow',
]
