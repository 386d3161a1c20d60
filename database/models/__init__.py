from .base import Base
from .volunteer import Skill, Volunteer, VolunteerSkill, VolunteerAvailability
from .event import Event, EventRequiredSkill
from .assignment import VolunteerAssignment
from .history import VolunteerHistory
from .notification import Notification

__all__ = [
    'Base',
    'Skill',
    'Volunteer',
    'VolunteerSkill',
    'VolunteerAvailability',
    'Event',
    'EventRequiredSkill',
    'VolunteerAssignment',
    'VolunteerHistory',
    'Notification',
]
