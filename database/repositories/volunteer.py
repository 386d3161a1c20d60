import logging
from typing import List, Optional, Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from database.models import Volunteer
from database.repositories.base import BaseRepository, coerce_id

logger = logging.getLogger(__name__)


class VolunteerRecordRepository(BaseRepository):
    def get_by_id(self, volunteer_id: Any) -> Optional[Volunteer]:
        stmt = select(Volunteer).where(Volunteer.id == coerce_id(volunteer_id)).options(
            selectinload(Volunteer.skills),
            selectinload(Volunteer.availability),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_active(self, limit: Optional[int] = None) -> List[Volunteer]:
        stmt = select(Volunteer).where(Volunteer.is_active == True).options(
            selectinload(Volunteer.skills),
            selectinload(Volunteer.availability),
        ).order_by(Volunteer.id)
        if limit:
            stmt = stmt.limit(limit)
        return self.db.execute(stmt).scalars().all()

    def list_all(self) -> List[Volunteer]:
        stmt = select(Volunteer).order_by(Volunteer.id)
        return self.db.execute(stmt).scalars().all()

    def update_reliability_score(self, volunteer: Volunteer, score: int) -> None:
        if volunteer.reliability_score != score:
            logger.debug(f"Reliability for volunteer {volunteer.id}: {volunteer.reliability_score} -> {score}")
        volunteer.reliability_score = score
