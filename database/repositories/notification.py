from typing import List, Any

from sqlalchemy import select

from database.models import Notification
from database.repositories.base import BaseRepository, coerce_id


class NotificationRepository(BaseRepository):
    def create(self, **fields) -> Notification:
        for key in ('recipient_id', 'related_event_id'):
            if key in fields:
                fields[key] = coerce_id(fields[key])
        notification = Notification(**fields)
        self.db.add(notification)
        self.db.flush()
        return notification

    def list_for_recipient(self, recipient_id: Any, unread_only: bool = False) -> List[Notification]:
        stmt = select(Notification).where(Notification.recipient_id == coerce_id(recipient_id))
        if unread_only:
            stmt = stmt.where(Notification.is_read == False)
        stmt = stmt.order_by(Notification.created_at.desc())
        return self.db.execute(stmt).scalars().all()
