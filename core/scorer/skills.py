#!/usr/bin/env python3
"""
Skill Compatibility - Weighted proficiency coverage of an event's skill list.

Per required-skill entry (req = min proficiency rank, beginner=1..expert=4):
    weight = 2 if is_required else 1
    max    = req * weight
    credit = min(volunteer_rank / req, 1) * req * weight   if held
           = 0                                             if missing and required
           = 0.3 * req * weight                            if missing and optional

score = round_half_up(sum(credit) / sum(max) * 100)
"""

from typing import Iterable, List, Dict, Sequence
import logging

from core.scorer.models import SkillProficiency, RequiredSkill
from core.exceptions import ValidationException
from core.utils import round_half_up

logger = logging.getLogger(__name__)

REQUIRED_WEIGHT = 2
OPTIONAL_WEIGHT = 1
MISSING_OPTIONAL_CREDIT = 0.3


def validate_required_skills(required_skills: Sequence[RequiredSkill]) -> None:
    """Reject lists with blank or duplicate skill ids."""
    seen = set()
    for req in required_skills:
        if req.skill_id is None or str(req.skill_id).strip() == '':
            raise ValidationException("Required skill entry is missing skill_id")
        if req.skill_id in seen:
            raise ValidationException(f"Duplicate required skill: {req.skill_id}")
        seen.add(req.skill_id)


def _skill_index(volunteer_skills: Iterable[SkillProficiency]) -> Dict[str, int]:
    # Keep the highest rank if a skill appears twice
    index: Dict[str, int] = {}
    for skill in volunteer_skills:
        rank = skill.proficiency.rank
        if rank > index.get(skill.skill_id, 0):
            index[skill.skill_id] = rank
    return index


def calculate_skill_score(
    volunteer_skills: Sequence[SkillProficiency],
    required_skills: Sequence[RequiredSkill]
) -> int:
    """
    Score how well a volunteer's skills cover an event's skill list.

    Args:
        volunteer_skills: Skills the volunteer holds
        required_skills: The event's skill entries

    Returns:
        Integer score 0-100. 100 when the event lists no skills,
        0 when it does and the volunteer holds none.
    """
    validate_required_skills(required_skills)

    if not required_skills:
        return 100
    if not volunteer_skills:
        return 0

    held = _skill_index(volunteer_skills)

    total_credit = 0.0
    total_max = 0.0
    for req in required_skills:
        req_rank = req.min_proficiency.rank
        weight = REQUIRED_WEIGHT if req.is_required else OPTIONAL_WEIGHT
        max_points = req_rank * weight
        total_max += max_points

        vol_rank = held.get(req.skill_id)
        if vol_rank is not None:
            total_credit += min(vol_rank / req_rank, 1.0) * max_points
        elif not req.is_required:
            total_credit += MISSING_OPTIONAL_CREDIT * max_points

    # round() first so float noise like 29.999999 does not drop a point
    return round_half_up(round(total_credit / total_max * 100, 6))


def find_missing_required_skills(
    volunteer_skills: Sequence[SkillProficiency],
    required_skills: Sequence[RequiredSkill]
) -> List[str]:
    """Names (or ids) of required skills the volunteer does not hold at all."""
    held = _skill_index(volunteer_skills)
    return [
        req.name or req.skill_id
        for req in required_skills
        if req.is_required and req.skill_id not in held
    ]
