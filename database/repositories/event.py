import logging
from datetime import datetime
from typing import List, Optional, Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from database.models import Event
from database.repositories.base import BaseRepository, coerce_id

logger = logging.getLogger(__name__)


class EventRepository(BaseRepository):
    def get_by_id(self, event_id: Any, for_update: bool = False) -> Optional[Event]:
        """Load an event; `for_update` takes a row lock until commit where the backend has one."""
        stmt = select(Event).where(Event.id == coerce_id(event_id)).options(
            selectinload(Event.required_skills)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def claim_slot(self, event_id: Any) -> bool:
        """
        Increment current_volunteers if the event is below max_volunteers.

        The check and the increment are one UPDATE, so two writers can never
        both take the last slot.
        """
        stmt = update(Event).where(
            Event.id == coerce_id(event_id),
            Event.current_volunteers < Event.max_volunteers,
        ).values(
            current_volunteers=Event.current_volunteers + 1
        ).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount == 1

    def list_by_status(self, statuses: Iterable[str]) -> List[Event]:
        stmt = select(Event).where(Event.status.in_(list(statuses))).options(
            selectinload(Event.required_skills)
        ).order_by(Event.start_date, Event.id)
        return self.db.execute(stmt).scalars().all()

    def list_upcoming_published(self, now: datetime) -> List[Event]:
        """Published events that have not ended yet and still have open spots."""
        stmt = select(Event).where(
            Event.status == 'published',
            Event.end_date > now,
            Event.current_volunteers < Event.max_volunteers,
        ).options(
            selectinload(Event.required_skills)
        ).order_by(Event.start_date, Event.id)
        return self.db.execute(stmt).scalars().all()

    def list_ended_unfinalized(self, now: datetime) -> List[Event]:
        """Events past their end that were never finalized."""
        stmt = select(Event).where(
            Event.status.in_(['published', 'in_progress']),
            Event.end_date <= now,
        ).order_by(Event.end_date, Event.id)
        return self.db.execute(stmt).scalars().all()

    def update_status(self, event: Event, status: str) -> None:
        logger.info(f"Event {event.id} status {event.status} -> {status}")
        event.status = status
