import logging
from datetime import datetime
from typing import List, Optional, Any, Tuple, Dict

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database.models import VolunteerHistory
from database.repositories.base import BaseRepository, coerce_id

logger = logging.getLogger(__name__)


class HistoryRepository(BaseRepository):
    def get_for_pair(self, volunteer_id: Any, event_id: Any) -> Optional[VolunteerHistory]:
        stmt = select(VolunteerHistory).where(
            VolunteerHistory.volunteer_id == coerce_id(volunteer_id),
            VolunteerHistory.event_id == coerce_id(event_id),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_volunteer(
        self,
        volunteer_id: Any,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[VolunteerHistory]:
        """Newest first; the date bounds are inclusive on participation_date."""
        stmt = select(VolunteerHistory).where(VolunteerHistory.volunteer_id == coerce_id(volunteer_id))
        if status is not None:
            stmt = stmt.where(VolunteerHistory.status == status)
        if start_date is not None:
            stmt = stmt.where(VolunteerHistory.participation_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(VolunteerHistory.participation_date <= end_date)
        stmt = stmt.options(selectinload(VolunteerHistory.event)).order_by(
            VolunteerHistory.participation_date.desc()
        )
        return self.db.execute(stmt).scalars().all()

    def list_all(self) -> List[VolunteerHistory]:
        stmt = select(VolunteerHistory).order_by(VolunteerHistory.participation_date.desc())
        return self.db.execute(stmt).scalars().all()

    def list_for_event(self, event_id: Any) -> List[VolunteerHistory]:
        stmt = select(VolunteerHistory).where(
            VolunteerHistory.event_id == coerce_id(event_id)
        ).order_by(VolunteerHistory.volunteer_id)
        return self.db.execute(stmt).scalars().all()

    def create_or_update(
        self,
        volunteer_id: Any,
        event_id: Any,
        fields: Dict[str, Any]
    ) -> Tuple[VolunteerHistory, bool]:
        """
        Upsert the history row for a (volunteer, event) pair.

        Inserts are flushed immediately so a concurrent writer surfaces
        as IntegrityError here rather than at commit.

        Returns:
            (record, created)
        """
        record = self.get_for_pair(volunteer_id, event_id)
        if record is not None:
            for key, value in fields.items():
                setattr(record, key, value)
            return record, False

        record = VolunteerHistory(
            volunteer_id=coerce_id(volunteer_id),
            event_id=coerce_id(event_id),
            **fields
        )
        self.db.add(record)
        self.db.flush()
        return record, True
