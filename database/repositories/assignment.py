import logging
from typing import List, Optional, Any, Iterable

from sqlalchemy import select, func

from database.models import VolunteerAssignment
from database.repositories.base import BaseRepository, coerce_id

logger = logging.getLogger(__name__)


class AssignmentRepository(BaseRepository):
    def get_for_pair(self, volunteer_id: Any, event_id: Any) -> Optional[VolunteerAssignment]:
        """
        Current assignment for a volunteer at an event.

        Prefers the non-cancelled row; falls back to the most recent
        cancelled one so callers can reactivate it.
        """
        stmt = select(VolunteerAssignment).where(
            VolunteerAssignment.volunteer_id == coerce_id(volunteer_id),
            VolunteerAssignment.event_id == coerce_id(event_id),
        ).order_by(VolunteerAssignment.assigned_at.desc())
        rows = self.db.execute(stmt).scalars().all()
        for row in rows:
            if row.status != 'cancelled':
                return row
        return rows[0] if rows else None

    def list_for_event(
        self,
        event_id: Any,
        statuses: Optional[Iterable[str]] = None
    ) -> List[VolunteerAssignment]:
        stmt = select(VolunteerAssignment).where(VolunteerAssignment.event_id == coerce_id(event_id))
        if statuses is not None:
            stmt = stmt.where(VolunteerAssignment.status.in_(list(statuses)))
        stmt = stmt.order_by(VolunteerAssignment.volunteer_id)
        return self.db.execute(stmt).scalars().all()

    def list_for_volunteer(
        self,
        volunteer_id: Any,
        statuses: Optional[Iterable[str]] = None
    ) -> List[VolunteerAssignment]:
        stmt = select(VolunteerAssignment).where(VolunteerAssignment.volunteer_id == coerce_id(volunteer_id))
        if statuses is not None:
            stmt = stmt.where(VolunteerAssignment.status.in_(list(statuses)))
        return self.db.execute(stmt).scalars().all()

    def list_by_status(self, status: str) -> List[VolunteerAssignment]:
        stmt = select(VolunteerAssignment).where(VolunteerAssignment.status == status)
        return self.db.execute(stmt).scalars().all()

    def count_for_event(self, event_id: Any, status: str) -> int:
        # Pending changes must be visible to the count
        self.db.flush()
        stmt = select(func.count(VolunteerAssignment.id)).where(
            VolunteerAssignment.event_id == coerce_id(event_id),
            VolunteerAssignment.status == status,
        )
        return self.db.execute(stmt).scalar_one()

    def create(self, **fields) -> VolunteerAssignment:
        for key in ('volunteer_id', 'event_id'):
            if key in fields:
                fields[key] = coerce_id(fields[key])
        assignment = VolunteerAssignment(**fields)
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def update_status(self, assignment: VolunteerAssignment, status: str) -> None:
        logger.debug(f"Assignment {assignment.id} status {assignment.status} -> {status}")
        assignment.status = status
