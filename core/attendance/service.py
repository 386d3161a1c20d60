#!/usr/bin/env python3
"""
Attendance Service - Check-in / check-out state machine.

Lifecycle of a history record for one (volunteer, event) pair:

    (none) --check_in--> confirmed/present --check_out--> completed
       |                        |
       |                        +--finalize_event--> completed (auto-checkout at event end)
       +--finalize_event--> no_show/absent (dated at event start)

Admins can override any field with update_attendance or mark a no-show
before check-out. Writes for one pair are serialized by a keyed lock and
backed by the history table's unique constraint; an insert that loses the
race is retried and observes the winner's row.

Every operation reads the clock once, commits its own transaction,
invalidates the volunteer's cached reliability, then notifies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, TypeVar
import logging

from sqlalchemy.exc import IntegrityError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from core.attendance.locks import KeyedLock
from core.cache import ReliabilityCache
from core.config_loader import AttendanceConfig
from core.enums import (
    ACTIVE_ASSIGNMENT_STATUSES, CHECKED_IN_ATTENDANCE,
    AssignmentStatus, AttendanceType, EventStatus, ParticipationStatus,
)
from core.exceptions import InvalidTransitionException, NotFoundException, ValidationException
from core.utils import Clock, as_utc, calculate_hours_worked, utc_now
from database.repository import VolunteerRepository
from notification.message_builder import NotificationMessageBuilder
from notification.service import NotificationService, notify_safely

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Process-wide so separate service instances still serialize the same pair
_DEFAULT_LOCKS = KeyedLock()

OPEN_STATUSES = (ParticipationStatus.CONFIRMED, ParticipationStatus.IN_PROGRESS)

OVERRIDE_FIELDS = (
    'attendance', 'status', 'hours_worked', 'performance_rating', 'feedback',
    'admin_notes', 'skills_utilized', 'participation_date', 'completion_date',
)


@dataclass
class CheckInResult:
    record: Any
    check_in_time: datetime
    already_checked_in: bool = False
    message: str = "Successfully checked in"


@dataclass
class CheckOutResult:
    record: Any
    check_out_time: datetime
    hours_worked: float
    message: str = ""


@dataclass
class FinalizeResult:
    event_id: str
    status: str = "finalized"
    updates: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            'total_volunteers': len(self.updates),
            'auto_checked_out': sum(1 for u in self.updates if u['action'] == 'auto_checkout'),
            'marked_no_show': sum(1 for u in self.updates if u['action'] == 'marked_no_show'),
            'unchanged': sum(1 for u in self.updates if u['action'] == 'unchanged'),
        }


def _is_checked_in(record) -> bool:
    return (
        ParticipationStatus.parse(record.status) in OPEN_STATUSES and
        AttendanceType.parse(record.attendance) in CHECKED_IN_ATTENDANCE
    )


def _is_completed(record) -> bool:
    return ParticipationStatus.parse(record.status) == ParticipationStatus.COMPLETED


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class AttendanceService:
    """
    Check-in, check-out, admin overrides, no-shows and the end-of-event sweep.
    """

    def __init__(
        self,
        repo: VolunteerRepository,
        config: AttendanceConfig,
        reliability_cache: Optional[ReliabilityCache] = None,
        notification_service: Optional[NotificationService] = None,
        locks: Optional[KeyedLock] = None,
        clock: Clock = utc_now
    ):
        self.repo = repo
        self.config = config
        self.reliability_cache = reliability_cache if reliability_cache is not None else ReliabilityCache()
        self.notification_service = notification_service
        self.locks = locks if locks is not None else _DEFAULT_LOCKS
        self.clock = clock

    # --- helpers ---

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def _require_event(self, event_id: Any):
        event = self.repo.find_event(event_id)
        if event is None:
            raise NotFoundException("Event", event_id)
        return event

    def _pair_key(self, volunteer_id: Any, event_id: Any):
        return ('pair', str(volunteer_id), str(event_id))

    def _active_assignment(self, volunteer_id: Any, event_id: Any):
        assignment = self.repo.find_assignment(volunteer_id, event_id)
        if assignment is None:
            return None
        if AssignmentStatus.parse(assignment.status) not in ACTIVE_ASSIGNMENT_STATUSES:
            return None
        return assignment

    def _check_in_window(self, event):
        start = as_utc(event.start_date)
        return start - timedelta(minutes=self.config.early_check_in_minutes), as_utc(event.end_date)

    def _transaction(self, fn: Callable[[], T]) -> T:
        """Run fn and commit; roll back and re-raise on any failure."""
        try:
            result = fn()
            self.repo.commit()
            return result
        except Exception:
            self.repo.rollback()
            raise

    def _with_insert_retry(self, fn: Callable[[], T]) -> T:
        retryer = Retrying(
            retry=retry_if_exception_type(IntegrityError),
            stop=stop_after_attempt(self.config.insert_retry_attempts),
            wait=wait_none(),
            before_sleep=lambda state: logger.info(
                f"History insert lost a race (attempt {state.attempt_number}), re-reading"
            ),
            reraise=True,
        )
        return retryer(self._transaction, fn)

    # --- volunteer actions ---

    def check_in(self, event_id: Any, volunteer_id: Any) -> CheckInResult:
        """Record a volunteer's arrival.

        Allowed from early_check_in_minutes before the start until the end
        (both inclusive) for a volunteer with a pending or confirmed
        assignment. Repeating a check-in returns the existing record.

        Raises:
            NotFoundException: Unknown event
            InvalidTransitionException: Outside the window, not assigned,
                event closed or already checked out
        """
        now = self._now()

        def attempt() -> CheckInResult:
            event = self._require_event(event_id)
            if EventStatus.parse(event.status) not in (EventStatus.PUBLISHED, EventStatus.IN_PROGRESS):
                raise InvalidTransitionException(f"Event is {event.status}; check-in is closed")

            opens, closes = self._check_in_window(event)
            if now < opens:
                raise InvalidTransitionException(
                    f"Cannot check in more than {self.config.early_check_in_minutes} minutes before event starts"
                )
            if now > closes:
                raise InvalidTransitionException("Cannot check in after event has ended")

            assignment = self._active_assignment(volunteer_id, event_id)
            if assignment is None:
                raise InvalidTransitionException("Volunteer is not assigned to this event")

            existing = self.repo.find_history(volunteer_id, event_id)
            if existing is not None:
                if _is_completed(existing):
                    raise InvalidTransitionException("Volunteer has already checked out from this event")
                if _is_checked_in(existing):
                    return CheckInResult(
                        record=existing,
                        check_in_time=as_utc(existing.participation_date),
                        already_checked_in=True,
                        message="Already checked in",
                    )

            record, _ = self.repo.create_or_update_history(volunteer_id, event_id, {
                'assignment_id': assignment.id,
                'status': ParticipationStatus.CONFIRMED.value,
                'attendance': AttendanceType.PRESENT.value,
                'participation_date': now,
            })
            return CheckInResult(record=record, check_in_time=now)

        with self.locks.hold(self._pair_key(volunteer_id, event_id)):
            result = self._with_insert_retry(attempt)

        if result.already_checked_in:
            return result

        self.reliability_cache.invalidate(volunteer_id)
        logger.info(f"Volunteer {volunteer_id} checked in to event {event_id} at {now.isoformat()}")
        event = self.repo.find_event(event_id)
        notify_safely(
            self.notification_service, volunteer_id,
            NotificationMessageBuilder.checked_in(event.title), related_event_id=event_id
        )
        return result

    def check_out(self, event_id: Any, volunteer_id: Any, feedback: Optional[str] = None) -> CheckOutResult:
        """Close an open check-in and record hours worked.

        Raises:
            InvalidTransitionException: No check-in, already checked out, or
                attendance is not present/late
        """
        now = self._now()

        def attempt() -> CheckOutResult:
            record = self.repo.find_history(volunteer_id, event_id)
            if record is None:
                raise InvalidTransitionException("No check-in record found. Please check in first.")
            if _is_completed(record):
                raise InvalidTransitionException("Volunteer has already checked out from this event")
            if AttendanceType.parse(record.attendance) not in CHECKED_IN_ATTENDANCE:
                raise InvalidTransitionException(
                    f"Cannot check out - attendance is {record.attendance}"
                )

            participated = as_utc(record.participation_date)
            hours = calculate_hours_worked(participated, now)
            record.status = ParticipationStatus.COMPLETED.value
            record.completion_date = max(now, participated)
            record.hours_worked = hours
            if feedback:
                record.feedback = feedback

            return CheckOutResult(
                record=record,
                check_out_time=now,
                hours_worked=hours,
                message=f"Successfully checked out. Hours worked: {hours}",
            )

        with self.locks.hold(self._pair_key(volunteer_id, event_id)):
            result = self._transaction(attempt)

        self.reliability_cache.invalidate(volunteer_id)
        logger.info(f"Volunteer {volunteer_id} checked out of event {event_id}: {result.hours_worked}h")
        event = self.repo.find_event(event_id)
        if event is not None:
            notify_safely(
                self.notification_service, volunteer_id,
                NotificationMessageBuilder.checked_out(event.title, result.hours_worked),
                related_event_id=event_id
            )
        return result

    # --- admin actions ---

    def _max_hours_for(self, event) -> float:
        """Longest stay an event allows: early check-in through its end, and never under max_hours_worked."""
        span = calculate_hours_worked(event.start_date, event.end_date) + self.config.early_check_in_minutes / 60
        return max(self.config.max_hours_worked, round(span, 2))

    def _validate_override(self, update: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(update) - set(OVERRIDE_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown attendance fields: {', '.join(sorted(unknown))}")

        data: Dict[str, Any] = {}
        if update.get('attendance') is not None:
            data['attendance'] = AttendanceType.parse(update['attendance']).value
        if update.get('status') is not None:
            data['status'] = ParticipationStatus.parse(update['status']).value

        if update.get('hours_worked') is not None:
            try:
                hours = float(update['hours_worked'])
            except (TypeError, ValueError):
                raise ValidationException(f"hours_worked must be a number (got {update['hours_worked']!r})") from None
            if hours < 0:
                raise ValidationException(f"hours_worked cannot be negative (got {hours})")
            data['hours_worked'] = round(hours, 2)

        if update.get('performance_rating') is not None:
            rating = update['performance_rating']
            if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
                raise ValidationException(f"performance_rating must be an integer 1-5 (got {rating!r})")
            data['performance_rating'] = rating

        for key in ('feedback', 'admin_notes'):
            if update.get(key):
                data[key] = update[key]

        if update.get('skills_utilized') is not None:
            skills = update['skills_utilized']
            if not isinstance(skills, (list, tuple)):
                raise ValidationException("skills_utilized must be a list")
            data['skills_utilized'] = [str(s) for s in skills]

        for key in ('participation_date', 'completion_date'):
            if update.get(key) is not None:
                if not isinstance(update[key], datetime):
                    raise ValidationException(f"{key} must be a datetime")
                data[key] = as_utc(update[key])

        return data

    def update_attendance(
        self,
        event_id: Any,
        volunteer_id: Any,
        update: Dict[str, Any],
        recorded_by: Optional[str] = None
    ):
        """Admin override of any subset of attendance fields.

        Bypasses the check-in window. Recording hours > 0 without an
        explicit status completes the record.

        Raises:
            ValidationException: Bad enum, rating, hours or date ordering
            NotFoundException: Volunteer has no assignment for the event
        """
        data = self._validate_override(update)
        now = self._now()

        def attempt():
            event = self._require_event(event_id)
            assignment = self.repo.find_assignment(volunteer_id, event_id)
            if assignment is None:
                raise NotFoundException("Assignment", f"volunteer {volunteer_id} / event {event_id}")
            limit = self._max_hours_for(event)
            if data.get('hours_worked', 0) > limit:
                raise ValidationException(
                    f"hours_worked must be between 0 and {limit} for this event "
                    f"(got {data['hours_worked']})"
                )

            existing = self.repo.find_history(volunteer_id, event_id)
            fields = dict(data)
            fields['recorded_by'] = recorded_by

            participated = fields.get('participation_date')
            if participated is None:
                participated = as_utc(existing.participation_date) if existing is not None else as_utc(event.start_date)

            if fields.get('hours_worked', 0) > 0 and 'status' not in fields:
                fields['status'] = ParticipationStatus.COMPLETED.value
                if 'completion_date' not in fields:
                    fields['completion_date'] = max(now, participated)

            completion = fields.get('completion_date')
            if completion is None and existing is not None and existing.completion_date is not None:
                completion = as_utc(existing.completion_date)
            if completion is not None and completion < participated:
                raise ValidationException("completion_date cannot be before participation_date")

            if existing is None:
                fields.setdefault('status', ParticipationStatus.REGISTERED.value)
                fields.setdefault('attendance', AttendanceType.PENDING.value)
                fields.setdefault('hours_worked', 0)
                fields.setdefault('participation_date', participated)
                fields['assignment_id'] = assignment.id

            record, _ = self.repo.create_or_update_history(volunteer_id, event_id, fields)
            return record

        with self.locks.hold(self._pair_key(volunteer_id, event_id)):
            record = self._with_insert_retry(attempt)

        self.reliability_cache.invalidate(volunteer_id)
        logger.info(f"Attendance for volunteer {volunteer_id} at event {event_id} updated by {recorded_by}: {sorted(data)}")
        return record

    def bulk_update_attendance(
        self,
        event_id: Any,
        updates: List[Dict[str, Any]],
        recorded_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Apply many overrides; each one succeeds or fails on its own.

        Args:
            updates: [{'volunteer_id': ..., <override fields>}, ...]

        Returns:
            {'updated': n, 'failed': n, 'results': [{volunteer_id, success, error?}]}
        """
        results = []
        for item in updates:
            fields = dict(item)
            volunteer_id = fields.pop('volunteer_id', None)
            try:
                if volunteer_id is None:
                    raise ValidationException("volunteer_id is required")
                self.update_attendance(event_id, volunteer_id, fields, recorded_by=recorded_by)
                results.append({'volunteer_id': volunteer_id, 'success': True})
            except Exception as e:
                logger.warning(f"Bulk attendance update failed for volunteer {volunteer_id}: {e}")
                results.append({'volunteer_id': volunteer_id, 'success': False, 'error': str(e)})

        updated = sum(1 for r in results if r['success'])
        return {'updated': updated, 'failed': len(results) - updated, 'results': results}

    def mark_no_show(
        self,
        event_id: Any,
        volunteer_id: Any,
        recorded_by: Optional[str] = None,
        admin_notes: Optional[str] = None,
        send_notification: bool = True
    ):
        """Mark an assigned volunteer as a no-show (absent, 0 hours).

        Raises:
            NotFoundException: No assignment for the pair
            InvalidTransitionException: Volunteer already checked out
        """
        def attempt():
            event = self._require_event(event_id)
            assignment = self.repo.find_assignment(volunteer_id, event_id)
            if assignment is None:
                raise NotFoundException("Assignment", f"volunteer {volunteer_id} / event {event_id}")

            existing = self.repo.find_history(volunteer_id, event_id)
            if existing is not None and _is_completed(existing):
                raise InvalidTransitionException("Volunteer has already checked out from this event")

            fields = {
                'status': ParticipationStatus.NO_SHOW.value,
                'attendance': AttendanceType.ABSENT.value,
                'hours_worked': 0,
                'completion_date': None,
                'recorded_by': recorded_by,
            }
            if admin_notes:
                fields['admin_notes'] = admin_notes
            if existing is None:
                fields['participation_date'] = as_utc(event.start_date)
                fields['assignment_id'] = assignment.id

            record, _ = self.repo.create_or_update_history(volunteer_id, event_id, fields)
            return event, record

        with self.locks.hold(self._pair_key(volunteer_id, event_id)):
            event, record = self._with_insert_retry(attempt)

        self.reliability_cache.invalidate(volunteer_id)
        logger.info(f"Volunteer {volunteer_id} marked no-show for event {event_id} by {recorded_by}")
        if send_notification:
            notify_safely(
                self.notification_service, volunteer_id,
                NotificationMessageBuilder.marked_no_show(event.title), related_event_id=event_id
            )
        return record

    def finalize_event(self, event_id: Any, recorded_by: Optional[str] = None) -> FinalizeResult:
        """End-of-event sweep.

        Every active assignment without history becomes a no-show dated at
        the event start; every open check-in is checked out at the event
        end. The event is then completed. All of it commits together.

        Raises:
            NotFoundException: Unknown event
            InvalidTransitionException: Event already completed or cancelled
        """
        result = FinalizeResult(event_id=str(event_id))

        def sweep():
            event = self._require_event(event_id)
            status = EventStatus.parse(event.status)
            if status == EventStatus.COMPLETED:
                raise InvalidTransitionException("Event has already been finalized")
            if status == EventStatus.CANCELLED:
                raise InvalidTransitionException("Cannot finalize a cancelled event")

            start = as_utc(event.start_date)
            end = as_utc(event.end_date)

            for assignment in self.repo.list_active_assignments(event.id):
                volunteer_id = assignment.volunteer_id
                history = self.repo.find_history(volunteer_id, event.id)

                if history is None:
                    self.repo.create_or_update_history(volunteer_id, event.id, {
                        'assignment_id': assignment.id,
                        'status': ParticipationStatus.NO_SHOW.value,
                        'attendance': AttendanceType.ABSENT.value,
                        'hours_worked': 0,
                        'participation_date': start,
                        'recorded_by': recorded_by,
                    })
                    result.updates.append({'volunteer_id': str(volunteer_id), 'action': 'marked_no_show', 'hours_worked': 0})
                elif _is_checked_in(history):
                    participated = as_utc(history.participation_date)
                    hours = calculate_hours_worked(participated, end)
                    history.status = ParticipationStatus.COMPLETED.value
                    history.completion_date = max(end, participated)
                    history.hours_worked = hours
                    history.recorded_by = recorded_by
                    history.admin_notes = _append_note(history.admin_notes, self.config.auto_checkout_note)
                    result.updates.append({'volunteer_id': str(volunteer_id), 'action': 'auto_checkout', 'hours_worked': hours})
                else:
                    result.updates.append({'volunteer_id': str(volunteer_id), 'action': 'unchanged', 'hours_worked': history.hours_worked})

            self.repo.update_event_status(event, EventStatus.COMPLETED.value)
            return event

        with self.locks.hold(('event', str(event_id))):
            event = self._transaction(sweep)

        summary = result.summary
        logger.info(
            f"Finalized event {event_id}: {summary['auto_checked_out']} auto-checked out, "
            f"{summary['marked_no_show']} no-shows"
        )

        for update in result.updates:
            if update['action'] == 'unchanged':
                continue
            self.reliability_cache.invalidate(update['volunteer_id'])
            outcome = 'no_show' if update['action'] == 'marked_no_show' else 'completed'
            notify_safely(
                self.notification_service, update['volunteer_id'],
                NotificationMessageBuilder.event_finalized(event.title, outcome, update['hours_worked']),
                related_event_id=event_id
            )
        return result

    # --- read models ---

    def get_attendance_status(self, event_id: Any, volunteer_id: Any) -> Dict[str, Any]:
        """Where a volunteer stands for one event, with can_check_in / can_check_out flags."""
        event = self._require_event(event_id)
        assignment = self.repo.find_assignment(volunteer_id, event_id)
        if assignment is None:
            return {'assigned': False, 'message': 'Not assigned to this event'}

        now = self._now()
        record = self.repo.find_history(volunteer_id, event_id)
        opens, closes = self._check_in_window(event)

        active = AssignmentStatus.parse(assignment.status) in ACTIVE_ASSIGNMENT_STATUSES
        event_open = EventStatus.parse(event.status) in (EventStatus.PUBLISHED, EventStatus.IN_PROGRESS)
        completed = record is not None and _is_completed(record)
        checked_in = record is not None and _is_checked_in(record)

        return {
            'assigned': True,
            'assignment_status': assignment.status,
            'can_check_in': active and event_open and opens <= now <= closes and not completed and not checked_in,
            'can_check_out': checked_in,
            'checked_in': record is not None and record.participation_date is not None and (checked_in or completed),
            'checked_out': completed,
            'check_in_time': as_utc(record.participation_date) if record is not None else None,
            'check_out_time': as_utc(record.completion_date) if record is not None else None,
            'hours_worked': float(record.hours_worked or 0) if record is not None else 0.0,
            'attendance': record.attendance if record is not None else AttendanceType.PENDING.value,
            'status': record.status if record is not None else ParticipationStatus.REGISTERED.value,
        }

    def get_event_roster(self, event_id: Any) -> Dict[str, Any]:
        """Every assignment for an event joined with its history, plus counts."""
        event = self._require_event(event_id)
        history = {str(h.volunteer_id): h for h in self.repo.list_history_for_event(event.id)}

        roster = []
        for assignment in self.repo.list_assignments_for_event(event.id):
            record = history.get(str(assignment.volunteer_id))
            roster.append({
                'volunteer_id': str(assignment.volunteer_id),
                'volunteer_name': assignment.volunteer.name if assignment.volunteer is not None else None,
                'assignment_status': assignment.status,
                'attendance': record.attendance if record else AttendanceType.PENDING.value,
                'participation_status': record.status if record else ParticipationStatus.REGISTERED.value,
                'checked_in': record is not None and (_is_checked_in(record) or _is_completed(record)),
                'checked_out': record is not None and record.completion_date is not None,
                'check_in_time': as_utc(record.participation_date) if record else None,
                'check_out_time': as_utc(record.completion_date) if record else None,
                'hours_worked': float(record.hours_worked or 0) if record else 0.0,
                'performance_rating': record.performance_rating if record else None,
                'feedback': record.feedback if record else None,
                'admin_notes': record.admin_notes if record else None,
            })

        def count(predicate) -> int:
            return sum(1 for r in roster if predicate(r))

        return {
            'event': {
                'id': str(event.id),
                'title': event.title,
                'start_date': as_utc(event.start_date),
                'end_date': as_utc(event.end_date),
                'status': event.status,
            },
            'roster': roster,
            'summary': {
                'total': len(roster),
                'present': count(lambda r: r['attendance'] == AttendanceType.PRESENT.value),
                'late': count(lambda r: r['attendance'] == AttendanceType.LATE.value),
                'absent': count(lambda r: r['attendance'] == AttendanceType.ABSENT.value),
                'no_show': count(lambda r: r['participation_status'] == ParticipationStatus.NO_SHOW.value),
                'checked_in': count(lambda r: r['checked_in']),
                'checked_out': count(lambda r: r['checked_out']),
            },
        }
