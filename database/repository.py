import logging
from datetime import datetime
from typing import List, Optional, Dict, Any, Iterable, Tuple

from sqlalchemy.orm import Session

from database.models import (
    Volunteer, Event, VolunteerAssignment, VolunteerHistory, Notification
)
from database.repositories import (
    VolunteerRecordRepository,
    EventRepository,
    AssignmentRepository,
    HistoryRepository,
    NotificationRepository,
)

logger = logging.getLogger(__name__)


class VolunteerRepository:
    """
    Narrow repository interface used by the matching and attendance services.

    Wraps the per-table repositories around a single Session so that one
    logical operation commits or rolls back as a unit.
    """

    def __init__(self, db: Session):
        self.db = db
        self.volunteers = VolunteerRecordRepository(db)
        self.events = EventRepository(db)
        self.assignments = AssignmentRepository(db)
        self.history = HistoryRepository(db)
        self.notifications = NotificationRepository(db)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # --- Lookups ---

    def find_volunteer(self, volunteer_id: Any) -> Optional[Volunteer]:
        return self.volunteers.get_by_id(volunteer_id)

    def find_event(self, event_id: Any, for_update: bool = False) -> Optional[Event]:
        return self.events.get_by_id(event_id, for_update=for_update)

    def find_assignment(self, volunteer_id: Any, event_id: Any) -> Optional[VolunteerAssignment]:
        return self.assignments.get_for_pair(volunteer_id, event_id)

    def find_history(self, volunteer_id: Any, event_id: Any) -> Optional[VolunteerHistory]:
        return self.history.get_for_pair(volunteer_id, event_id)

    # --- Lists ---

    def list_active_assignments(self, event_id: Any) -> List[VolunteerAssignment]:
        """Pending or confirmed assignments for an event, ordered by volunteer id."""
        return self.assignments.list_for_event(event_id, statuses=['pending', 'confirmed'])

    def list_assignments_for_event(
        self,
        event_id: Any,
        statuses: Optional[Iterable[str]] = None
    ) -> List[VolunteerAssignment]:
        return self.assignments.list_for_event(event_id, statuses)

    def list_assignments_for_volunteer(
        self,
        volunteer_id: Any,
        statuses: Optional[Iterable[str]] = None
    ) -> List[VolunteerAssignment]:
        return self.assignments.list_for_volunteer(volunteer_id, statuses)

    def list_confirmed_assignments(self) -> List[VolunteerAssignment]:
        return self.assignments.list_by_status('confirmed')

    def list_active_volunteers(self) -> List[Volunteer]:
        return self.volunteers.list_active()

    def list_all_volunteers(self) -> List[Volunteer]:
        return self.volunteers.list_all()

    def list_events_by_status(self, statuses: Iterable[str]) -> List[Event]:
        return self.events.list_by_status(statuses)

    def list_open_events(self, now) -> List[Event]:
        return self.events.list_upcoming_published(now)

    def list_events_to_finalize(self, now) -> List[Event]:
        return self.events.list_ended_unfinalized(now)

    def list_history_for_volunteer(
        self,
        volunteer_id: Any,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[VolunteerHistory]:
        return self.history.list_for_volunteer(volunteer_id, status=status, start_date=start_date, end_date=end_date)

    def list_all_history(self) -> List[VolunteerHistory]:
        return self.history.list_all()

    def list_history_for_event(self, event_id: Any) -> List[VolunteerHistory]:
        return self.history.list_for_event(event_id)

    # --- Writes ---

    def create_or_update_history(
        self,
        volunteer_id: Any,
        event_id: Any,
        fields: Dict[str, Any]
    ) -> Tuple[VolunteerHistory, bool]:
        return self.history.create_or_update(volunteer_id, event_id, fields)

    def create_assignment(self, **fields) -> VolunteerAssignment:
        return self.assignments.create(**fields)

    def update_event_status(self, event: Event, status: str) -> None:
        self.events.update_status(event, status)

    def update_assignment_status(self, assignment: VolunteerAssignment, status: str) -> None:
        self.assignments.update_status(assignment, status)

    def sync_event_volunteer_count(self, event: Event) -> int:
        """Set current_volunteers to the number of confirmed assignments."""
        count = self.assignments.count_for_event(event.id, 'confirmed')
        event.current_volunteers = count
        return count

    def reserve_event_slot(self, event: Event) -> bool:
        """
        Take one confirmed slot on the event, or return False when it is full.

        current_volunteers is first written back from the confirmed count so
        the guarded increment compares against committed rows.
        """
        self.sync_event_volunteer_count(event)
        self.db.flush()
        return self.events.claim_slot(event.id)

    def update_reliability_score(self, volunteer: Volunteer, score: int) -> None:
        self.volunteers.update_reliability_score(volunteer, score)

    def create_notification(self, **fields) -> Notification:
        return self.notifications.create(**fields)
