import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session


def coerce_id(value: Any) -> Optional[uuid.UUID]:
    """Accept UUIDs or their string form; unparsable ids match nothing."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class BaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
