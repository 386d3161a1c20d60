#!/usr/bin/env python3
"""
Assignment Service - Volunteer sign-up and assignment status changes.

Keeps the event's current_volunteers equal to its confirmed-assignment
count after every committed transition. Across processes the event row
is locked for the transaction, confirmed slots are taken with a guarded
UPDATE and the database refuses a second live assignment for a pair.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.exc import IntegrityError

from core.attendance.locks import KeyedLock
from core.enums import AssignmentStatus, EventStatus
from core.exceptions import InvalidTransitionException, NotFoundException, ValidationException
from core.utils import Clock, as_utc, utc_now
from database.repository import VolunteerRepository
from notification.message_builder import NotificationMessageBuilder
from notification.service import NotificationService, notify_safely

logger = logging.getLogger(__name__)

_DEFAULT_LOCKS = KeyedLock()

# Bulk proposals at or above this score are confirmed immediately
AUTO_CONFIRM_MIN_SCORE = 80


class AssignmentService:
    """Creates, reactivates and transitions volunteer assignments."""

    def __init__(
        self,
        repo: VolunteerRepository,
        notification_service: Optional[NotificationService] = None,
        locks: Optional[KeyedLock] = None,
        clock: Clock = utc_now
    ):
        self.repo = repo
        self.notification_service = notification_service
        self.locks = locks if locks is not None else _DEFAULT_LOCKS
        self.clock = clock

    def _has_capacity(self, event) -> bool:
        confirmed = self.repo.sync_event_volunteer_count(event)
        return confirmed < event.max_volunteers

    def assign_volunteer(
        self,
        event_id: Any,
        volunteer_id: Any,
        status: str = 'pending',
        match_score: Optional[int] = None,
        notes: Optional[str] = None,
        assigned_by: Optional[str] = None
    ):
        """Sign a volunteer up for a published event.

        A previously cancelled assignment for the same pair is reactivated
        instead of duplicated.

        Raises:
            ValidationException: Unknown status
            NotFoundException: Unknown volunteer or event
            InvalidTransitionException: Event not published, at capacity,
                volunteer inactive or already assigned
        """
        requested = AssignmentStatus.parse(status)
        if requested not in (AssignmentStatus.PENDING, AssignmentStatus.CONFIRMED):
            raise InvalidTransitionException(f"New assignments must be pending or confirmed, not {requested.value}")

        now = as_utc(self.clock())

        with self.locks.hold(('event', str(event_id))):
            try:
                volunteer = self.repo.find_volunteer(volunteer_id)
                if volunteer is None:
                    raise NotFoundException("Volunteer", volunteer_id)
                if not volunteer.is_active:
                    raise InvalidTransitionException("Volunteer is not active")

                event = self.repo.find_event(event_id, for_update=True)
                if event is None:
                    raise NotFoundException("Event", event_id)
                if EventStatus.parse(event.status) != EventStatus.PUBLISHED:
                    raise InvalidTransitionException("Event is not accepting volunteers")
                if not self._has_capacity(event):
                    raise InvalidTransitionException("Event is at full capacity")

                existing = self.repo.find_assignment(volunteer_id, event_id)
                if existing is not None and AssignmentStatus.parse(existing.status) != AssignmentStatus.CANCELLED:
                    raise InvalidTransitionException("Volunteer is already assigned to this event")
                if requested == AssignmentStatus.CONFIRMED and not self.repo.reserve_event_slot(event):
                    raise InvalidTransitionException("Event is at full capacity")

                confirmed_at = now if requested == AssignmentStatus.CONFIRMED else None
                if existing is not None:
                    logger.info(f"Reactivating cancelled assignment {existing.id}")
                    self.repo.update_assignment_status(existing, requested.value)
                    existing.match_score = match_score
                    existing.notes = notes
                    existing.assigned_by = assigned_by
                    existing.assigned_at = now
                    existing.confirmed_at = confirmed_at
                    assignment = existing
                else:
                    assignment = self.repo.create_assignment(
                        volunteer_id=volunteer_id,
                        event_id=event_id,
                        status=requested.value,
                        match_score=match_score,
                        notes=notes,
                        assigned_by=assigned_by,
                        assigned_at=now,
                        confirmed_at=confirmed_at,
                    )

                self.repo.sync_event_volunteer_count(event)
                self.repo.commit()
            except IntegrityError as e:
                self.repo.rollback()
                logger.warning(f"Concurrent assignment of volunteer {volunteer_id} to event {event_id}: {e}")
                raise InvalidTransitionException("Volunteer is already assigned to this event") from e
            except Exception:
                self.repo.rollback()
                raise

        logger.info(f"Volunteer {volunteer_id} assigned to event {event_id} ({requested.value})")
        notify_safely(
            self.notification_service, volunteer_id,
            NotificationMessageBuilder.assignment_created(event.title), related_event_id=event_id
        )
        return assignment

    def update_assignment_status(self, event_id: Any, volunteer_id: Any, status: str):
        """Move an assignment to a new status and resync the event count.

        Raises:
            NotFoundException: No assignment for the pair
            InvalidTransitionException: Confirming into a full event
        """
        new_status = AssignmentStatus.parse(status)

        with self.locks.hold(('event', str(event_id))):
            try:
                assignment = self.repo.find_assignment(volunteer_id, event_id)
                if assignment is None:
                    raise NotFoundException("Assignment", f"volunteer {volunteer_id} / event {event_id}")
                event = self.repo.find_event(event_id, for_update=True)
                if event is None:
                    raise NotFoundException("Event", event_id)

                current = AssignmentStatus.parse(assignment.status)
                if current == new_status:
                    return assignment

                if new_status == AssignmentStatus.CONFIRMED:
                    if not self.repo.reserve_event_slot(event):
                        raise InvalidTransitionException("Event is at full capacity")
                    assignment.confirmed_at = as_utc(self.clock())

                self.repo.update_assignment_status(assignment, new_status.value)
                self.repo.sync_event_volunteer_count(event)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

        logger.info(f"Assignment {assignment.id} {current.value} -> {new_status.value}")
        notify_safely(
            self.notification_service, volunteer_id,
            NotificationMessageBuilder.assignment_status_changed(event.title, new_status.value),
            related_event_id=event_id
        )
        return assignment

    def bulk_assign(
        self,
        event_id: Any,
        proposals: List[Dict[str, Any]],
        auto_confirm: bool = True,
        assigned_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Assign a batch of proposed volunteers; each one succeeds or fails on its own.

        With auto_confirm, proposals scoring AUTO_CONFIRM_MIN_SCORE or more
        are confirmed straight away and the rest stay pending.

        Args:
            proposals: [{'volunteer_id', 'match_score', 'match_quality'?, 'notes'?}, ...],
                or MatchResult.to_dict() rows, whose subject_id is the volunteer

        Returns:
            {'event_id', 'results': [{volunteer_id, success, status?, match_score, assignment_id?, error?}],
             'summary': {total, successful, failed, success_rate}}
        """
        results = []
        for proposal in proposals:
            volunteer_id = proposal.get('volunteer_id', proposal.get('subject_id'))
            score = proposal.get('match_score')
            status = (
                AssignmentStatus.CONFIRMED
                if auto_confirm and score is not None and score >= AUTO_CONFIRM_MIN_SCORE
                else AssignmentStatus.PENDING
            )
            quality = proposal.get('match_quality')
            notes = proposal.get('notes') or (f"Bulk assignment - {quality} match" if quality else "Bulk assignment")
            try:
                if volunteer_id is None:
                    raise ValidationException("volunteer_id is required")
                assignment = self.assign_volunteer(
                    event_id, volunteer_id,
                    status=status.value,
                    match_score=score,
                    notes=notes,
                    assigned_by=assigned_by,
                )
                results.append({
                    'volunteer_id': str(volunteer_id),
                    'success': True,
                    'status': status.value,
                    'match_score': score,
                    'assignment_id': str(assignment.id),
                })
            except Exception as e:
                logger.warning(f"Bulk assignment of volunteer {volunteer_id} to event {event_id} failed: {e}")
                results.append({
                    'volunteer_id': str(volunteer_id) if volunteer_id is not None else None,
                    'success': False,
                    'match_score': score,
                    'error': str(e),
                })

        successful = sum(1 for r in results if r['success'])
        total = len(results)
        logger.info(f"Bulk assignment for event {event_id}: {successful}/{total} succeeded")
        return {
            'event_id': str(event_id),
            'results': results,
            'summary': {
                'total': total,
                'successful': successful,
                'failed': total - successful,
                'success_rate': round(successful / total * 100) if total else 0,
            },
        }
