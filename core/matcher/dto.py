"""Adapters from ORM rows to scorer profiles.

Profiles are plain dataclasses, so scoring can run in worker threads and
after the database session is closed.
"""

from typing import Optional

from core.enums import Proficiency, DayOfWeek, EventStatus, UrgencyLevel
from core.scorer.models import (
    VolunteerProfile, EventProfile, SkillProficiency, RequiredSkill, AvailabilityWindow
)
from core.utils import as_utc
from database.models import Volunteer, Event


def volunteer_to_profile(volunteer: Volunteer, reliability_score: Optional[int] = None) -> VolunteerProfile:
    skills = [
        SkillProficiency(
            skill_id=str(s.skill_id),
            proficiency=Proficiency.parse(s.proficiency),
        )
        for s in volunteer.skills
    ]
    windows = [
        AvailabilityWindow(
            start_time=a.start_time,
            end_time=a.end_time,
            day_of_week=DayOfWeek.parse(a.day_of_week) if a.day_of_week else None,
            specific_date=a.specific_date if not a.is_recurring else None,
        )
        for a in volunteer.availability
    ]
    return VolunteerProfile(
        volunteer_id=str(volunteer.id),
        skills=skills,
        availability=windows,
        latitude=volunteer.latitude,
        longitude=volunteer.longitude,
        reliability_score=reliability_score if reliability_score is not None else volunteer.reliability_score,
        is_active=bool(volunteer.is_active),
        name=volunteer.name,
    )


def event_to_profile(event: Event) -> EventProfile:
    required = [
        RequiredSkill(
            skill_id=str(r.skill_id),
            min_proficiency=Proficiency.parse(r.min_proficiency),
            is_required=bool(r.is_required),
            name=r.skill.name if r.skill is not None else None,
        )
        for r in event.required_skills
    ]
    return EventProfile(
        event_id=str(event.id),
        start=as_utc(event.start_date),
        end=as_utc(event.end_date),
        required_skills=required,
        latitude=event.latitude,
        longitude=event.longitude,
        urgency=UrgencyLevel.parse(event.urgency),
        status=EventStatus.parse(event.status),
        max_volunteers=event.max_volunteers,
        current_volunteers=event.current_volunteers or 0,
        title=event.title,
    )
