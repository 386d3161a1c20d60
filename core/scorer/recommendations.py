#!/usr/bin/env python3
"""
Match quality bands and human-readable recommendations.
"""

from typing import List, Sequence

from core.config_loader import QualityBand
from core.scorer.models import ScoreBreakdown

FACTOR_ORDER = ('skills', 'availability', 'location', 'reliability')

STRONG_MESSAGES = {
    'skills': "Strong skill match for this event",
    'availability': "Available during the event time",
    'location': "Lives close to the event location",
    'reliability': "Reliable attendance history",
}

WEAK_MESSAGES = {
    'skills': "Skill gaps for this event's requirements",
    'availability': "Not available during the event time",
    'location': "Far from the event location",
    'reliability': "Low reliability based on past attendance",
}


def classify_match_quality(score: int, bands: Sequence[QualityBand]) -> str:
    """Label of the highest band whose threshold the score reaches."""
    for band in sorted(bands, key=lambda b: b.min_score, reverse=True):
        if score >= band.min_score:
            return band.label
    return bands[-1].label


def build_recommendations(
    breakdown: ScoreBreakdown,
    weak_threshold: int = 50,
    missing_required_skills: Sequence[str] = ()
) -> List[str]:
    """
    Name the strongest factor, every weak factor (< weak_threshold) and
    any required skills the volunteer lacks.
    """
    scores = breakdown.to_dict()
    recommendations: List[str] = []

    # max() keeps the first factor on ties, so FACTOR_ORDER decides
    strongest = max(FACTOR_ORDER, key=lambda f: scores[f])
    if scores[strongest] >= weak_threshold:
        recommendations.append(f"{STRONG_MESSAGES[strongest]} ({strongest}: {scores[strongest]})")

    for factor in FACTOR_ORDER:
        if scores[factor] < weak_threshold:
            recommendations.append(f"{WEAK_MESSAGES[factor]} ({factor}: {scores[factor]})")

    if missing_required_skills:
        recommendations.append(f"Missing required skills: {', '.join(missing_required_skills)}")

    return recommendations
