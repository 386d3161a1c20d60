import contextlib
import logging

from database.database import SessionLocal
from database.repository import VolunteerRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def volunteer_uow():
    """Per-unit-of-work transaction scope.

    Yields a VolunteerRepository bound to a fresh Session. Commits on
    success, rolls back on exception, always closes. Services may commit
    earlier themselves; the final commit is then a no-op.

    Usage:
        with volunteer_uow() as repo:
            service = AttendanceService(repo, ...)
            service.check_in(event_id, volunteer_id)
    """
    session = SessionLocal()
    try:
        repo = VolunteerRepository(session)
        yield repo
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
