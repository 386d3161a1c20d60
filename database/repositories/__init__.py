from database.repositories.base import BaseRepository
from database.repositories.volunteer import VolunteerRecordRepository
from database.repositories.event import EventRepository
from database.repositories.assignment import AssignmentRepository
from database.repositories.history import HistoryRepository
from database.repositories.notification import NotificationRepository

__all__ = [
    'BaseRepository',
    'VolunteerRecordRepository',
    'EventRepository',
    'AssignmentRepository',
    'HistoryRepository',
    'NotificationRepository',
]
