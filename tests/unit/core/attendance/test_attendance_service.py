#!/usr/bin/env python3
"""
Tests for the check-in / check-out state machine and admin overrides.

Event under test runs 09:00-17:00 UTC on Monday 2026-06-15.

Usage:
    python -m pytest tests/unit/core/attendance/test_attendance_service.py -v
"""

import unittest
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from core.attendance import AttendanceService, KeyedLock
from core.cache import ReliabilityCache
from core.config_loader import AttendanceConfig
from core.exceptions import InvalidTransitionException, NotFoundException, ValidationException
from core.utils import as_utc
from database.repository import VolunteerRepository
from notification import NotificationPriority
from tests import FixedClock, create_session_factory, create_test_engine, utc
from tests.fixtures.records import make_assignment, make_event, make_history, make_volunteer
from tests.mocks.notification_mocks import RecordingNotificationService
from tests.mocks.redis_mocks import InMemoryRedis


class AttendanceTestCase(unittest.TestCase):
    """Shared setup: one volunteer with a confirmed assignment to one event."""

    def setUp(self):
        self.engine = create_test_engine()
        self.session = create_session_factory(self.engine)()
        self.clock = FixedClock(utc(2026, 6, 15, 9, 0))
        self.notifier = RecordingNotificationService()
        self.cache = ReliabilityCache(client=InMemoryRedis())
        self.repo = VolunteerRepository(self.session)
        self.service = AttendanceService(
            self.repo,
            AttendanceConfig(),
            reliability_cache=self.cache,
            notification_service=self.notifier,
            locks=KeyedLock(),
            clock=self.clock,
        )

        volunteer = make_volunteer(self.session, "Ana")
        event = make_event(self.session, utc(2026, 6, 15, 9), utc(2026, 6, 15, 17), title="Food Bank Shift")
        make_assignment(self.session, volunteer, event, status="confirmed")
        self.session.commit()

        self.volunteer_id = volunteer.id
        self.event_id = event.id

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def history(self):
        return self.repo.find_history(self.volunteer_id, self.event_id)


class TestCheckInWindow(AttendanceTestCase):

    def test_rejects_more_than_thirty_minutes_early(self):
        self.clock.set(utc(2026, 6, 15, 8, 29))
        with self.assertRaises(InvalidTransitionException) as ctx:
            self.service.check_in(self.event_id, self.volunteer_id)
        self.assertIn("30 minutes", str(ctx.exception))
        self.assertIsNone(self.history())

    def test_accepts_exactly_thirty_minutes_early(self):
        self.clock.set(utc(2026, 6, 15, 8, 30))
        result = self.service.check_in(self.event_id, self.volunteer_id)
        self.assertFalse(result.already_checked_in)
        self.assertEqual(result.check_in_time, utc(2026, 6, 15, 8, 30))

    def test_accepts_at_event_end(self):
        self.clock.set(utc(2026, 6, 15, 17, 0))
        self.service.check_in(self.event_id, self.volunteer_id)
        self.assertEqual(self.history().attendance, 'present')

    def test_rejects_after_event_end(self):
        self.clock.set(utc(2026, 6, 15, 17, 1))
        with self.assertRaises(InvalidTransitionException):
            self.service.check_in(self.event_id, self.volunteer_id)
        self.assertIsNone(self.history())

    def test_window_is_configurable(self):
        self.service.config = AttendanceConfig(early_check_in_minutes=60)
        self.clock.set(utc(2026, 6, 15, 8, 0))
        self.service.check_in(self.event_id, self.volunteer_id)
        self.assertIsNotNone(self.history())


class TestCheckIn(AttendanceTestCase):

    def test_creates_confirmed_present_record(self):
        self.service.check_in(self.event_id, self.volunteer_id)

        record = self.history()
        self.assertEqual(record.status, 'confirmed')
        self.assertEqual(record.attendance, 'present')
        self.assertEqual(as_utc(record.participation_date), utc(2026, 6, 15, 9, 0))
        self.assertIsNotNone(record.assignment_id)
        self.assertEqual(self.notifier.titles(), ["Checked in: Food Bank Shift"])

    def test_repeat_check_in_returns_existing_record(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.advance(minutes=20)

        again = self.service.check_in(self.event_id, self.volunteer_id)

        self.assertTrue(again.already_checked_in)
        self.assertEqual(again.check_in_time, utc(2026, 6, 15, 9, 0))
        self.assertEqual(as_utc(self.history().participation_date), utc(2026, 6, 15, 9, 0))
        self.assertEqual(len(self.notifier.sent), 1)

    def test_pending_assignment_may_check_in(self):
        other = make_volunteer(self.session, "Ben")
        event = self.repo.find_event(self.event_id)
        make_assignment(self.session, other, event, status="pending")
        self.session.commit()

        self.service.check_in(self.event_id, other.id)
        self.assertIsNotNone(self.repo.find_history(other.id, self.event_id))

    def test_unassigned_volunteer_rejected(self):
        stranger = make_volunteer(self.session, "Cleo")
        self.session.commit()

        with self.assertRaises(InvalidTransitionException):
            self.service.check_in(self.event_id, stranger.id)

    def test_cancelled_assignment_rejected(self):
        assignment = self.repo.find_assignment(self.volunteer_id, self.event_id)
        assignment.status = 'cancelled'
        self.session.commit()

        with self.assertRaises(InvalidTransitionException):
            self.service.check_in(self.event_id, self.volunteer_id)

    def test_unknown_event(self):
        with self.assertRaises(NotFoundException):
            self.service.check_in("9b2f4c1e-0000-4000-8000-000000000000", self.volunteer_id)

    def test_cancelled_event_rejected(self):
        event = self.repo.find_event(self.event_id)
        event.status = 'cancelled'
        self.session.commit()

        with self.assertRaises(InvalidTransitionException):
            self.service.check_in(self.event_id, self.volunteer_id)

    def test_check_in_after_check_out_rejected(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.advance(hours=2)
        self.service.check_out(self.event_id, self.volunteer_id)

        with self.assertRaises(InvalidTransitionException):
            self.service.check_in(self.event_id, self.volunteer_id)

    def test_notification_failure_does_not_fail_check_in(self):
        self.service.notification_service = RecordingNotificationService(fail=True)

        result = self.service.check_in(self.event_id, self.volunteer_id)

        self.assertFalse(result.already_checked_in)
        self.assertIsNotNone(self.history())

    def test_invalidates_reliability_cache(self):
        self.cache.set(self.volunteer_id, {'reliability_score': 100}, self.cache.generation(self.volunteer_id))
        self.assertIn(self.volunteer_id, self.cache)

        self.service.check_in(self.event_id, self.volunteer_id)
        self.assertNotIn(self.volunteer_id, self.cache)

    def test_insert_conflict_is_retried(self):
        real = self.repo.create_or_update_history
        calls = []

        def flaky(volunteer_id, event_id, fields):
            calls.append(fields)
            if len(calls) == 1:
                raise IntegrityError("INSERT INTO volunteer_history", {}, Exception("duplicate key"))
            return real(volunteer_id, event_id, fields)

        with patch.object(self.repo, 'create_or_update_history', side_effect=flaky):
            result = self.service.check_in(self.event_id, self.volunteer_id)

        self.assertEqual(len(calls), 2)
        self.assertFalse(result.already_checked_in)
        self.assertIsNotNone(self.history())

    def test_insert_conflict_gives_up_after_configured_attempts(self):
        self.service.config = AttendanceConfig(insert_retry_attempts=2)
        conflict = IntegrityError("INSERT INTO volunteer_history", {}, Exception("duplicate key"))

        with patch.object(self.repo, 'create_or_update_history', side_effect=conflict) as mock_upsert:
            with self.assertRaises(IntegrityError):
                self.service.check_in(self.event_id, self.volunteer_id)

        self.assertEqual(mock_upsert.call_count, 2)


class TestCheckOut(AttendanceTestCase):

    def test_hours_worked_rounded_to_two_decimals(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.set(utc(2026, 6, 15, 13, 30))

        result = self.service.check_out(self.event_id, self.volunteer_id)

        self.assertEqual(result.hours_worked, 4.5)
        record = self.history()
        self.assertEqual(record.status, 'completed')
        self.assertEqual(record.hours_worked, 4.5)
        self.assertEqual(as_utc(record.completion_date), utc(2026, 6, 15, 13, 30))

    def test_fractional_hours(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.set(utc(2026, 6, 15, 10, 20))

        result = self.service.check_out(self.event_id, self.volunteer_id)

        self.assertEqual(result.hours_worked, 1.33)

    def test_feedback_is_stored(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.advance(hours=1)

        self.service.check_out(self.event_id, self.volunteer_id, feedback="Great team")

        self.assertEqual(self.history().feedback, "Great team")

    def test_without_check_in_rejected(self):
        with self.assertRaises(InvalidTransitionException):
            self.service.check_out(self.event_id, self.volunteer_id)

    def test_double_check_out_rejected(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.advance(hours=1)
        self.service.check_out(self.event_id, self.volunteer_id)

        with self.assertRaises(InvalidTransitionException):
            self.service.check_out(self.event_id, self.volunteer_id)

    def test_absent_volunteer_cannot_check_out(self):
        self.service.mark_no_show(self.event_id, self.volunteer_id, recorded_by="admin")

        with self.assertRaises(InvalidTransitionException):
            self.service.check_out(self.event_id, self.volunteer_id)

    def test_late_attendance_may_check_out(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.service.update_attendance(self.event_id, self.volunteer_id, {'attendance': 'late'})
        self.clock.advance(hours=2)

        result = self.service.check_out(self.event_id, self.volunteer_id)

        self.assertEqual(result.hours_worked, 2.0)


class TestUpdateAttendance(AttendanceTestCase):

    def test_rating_out_of_range_rejected_before_write(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {'performance_rating': 6})
        self.assertIsNone(self.history())

    def test_negative_hours_rejected(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {'hours_worked': -1})

    def test_hours_limit_follows_event_length(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {'hours_worked': 30})
        self.assertIsNone(self.history())

        retreat = make_event(self.session, utc(2026, 6, 15, 9), utc(2026, 6, 18, 17), title="Trail Retreat")
        make_assignment(self.session, self.repo.find_volunteer(self.volunteer_id), retreat)
        self.session.commit()

        record = self.service.update_attendance(retreat.id, self.volunteer_id, {'hours_worked': 80})

        self.assertEqual(record.hours_worked, 80)
        self.assertEqual(record.status, 'completed')
        with self.assertRaises(ValidationException):
            self.service.update_attendance(retreat.id, self.volunteer_id, {'hours_worked': 81})

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {'mood': 'happy'})

    def test_bad_enum_rejected(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {'attendance': 'asleep'})

    def test_hours_without_status_completes_record(self):
        self.clock.set(utc(2026, 6, 15, 18, 0))

        record = self.service.update_attendance(
            self.event_id, self.volunteer_id, {'hours_worked': 5}, recorded_by="admin-1"
        )

        self.assertEqual(record.status, 'completed')
        self.assertEqual(record.hours_worked, 5.0)
        self.assertEqual(as_utc(record.participation_date), utc(2026, 6, 15, 9, 0))
        self.assertEqual(as_utc(record.completion_date), utc(2026, 6, 15, 18, 0))
        self.assertEqual(record.recorded_by, "admin-1")

    def test_explicit_status_is_kept(self):
        record = self.service.update_attendance(
            self.event_id, self.volunteer_id, {'hours_worked': 3, 'status': 'LEFT-EARLY'}
        )
        self.assertEqual(record.status, 'left_early')

    def test_creates_record_with_defaults(self):
        record = self.service.update_attendance(self.event_id, self.volunteer_id, {'feedback': 'Helpful'})
        self.assertEqual(record.status, 'registered')
        self.assertEqual(record.attendance, 'pending')
        self.assertEqual(record.feedback, 'Helpful')

    def test_completion_before_participation_rejected(self):
        with self.assertRaises(ValidationException):
            self.service.update_attendance(self.event_id, self.volunteer_id, {
                'participation_date': utc(2026, 6, 15, 12, 0),
                'completion_date': utc(2026, 6, 15, 11, 0),
            })
        self.assertIsNone(self.history())

    def test_bypasses_check_in_window(self):
        self.clock.set(utc(2026, 6, 20, 9, 0))
        record = self.service.update_attendance(
            self.event_id, self.volunteer_id, {'attendance': 'present', 'performance_rating': 4}
        )
        self.assertEqual(record.performance_rating, 4)

    def test_requires_assignment(self):
        stranger = make_volunteer(self.session, "Dev")
        self.session.commit()

        with self.assertRaises(NotFoundException):
            self.service.update_attendance(self.event_id, stranger.id, {'attendance': 'present'})

    def test_skills_utilized_stored(self):
        record = self.service.update_attendance(
            self.event_id, self.volunteer_id, {'skills_utilized': ['first aid', 'driving']}
        )
        self.assertEqual(record.skills_utilized, ['first aid', 'driving'])

    def test_bulk_update_collects_failures(self):
        other = make_volunteer(self.session, "Eli")
        self.session.commit()

        result = self.service.bulk_update_attendance(self.event_id, [
            {'volunteer_id': self.volunteer_id, 'attendance': 'present', 'hours_worked': 6},
            {'volunteer_id': other.id, 'attendance': 'present'},
            {'attendance': 'absent'},
        ], recorded_by="admin-1")

        self.assertEqual(result['updated'], 1)
        self.assertEqual(result['failed'], 2)
        self.assertTrue(result['results'][0]['success'])
        self.assertFalse(result['results'][1]['success'])
        self.assertIn('not found', result['results'][1]['error'])
        self.assertEqual(self.history().hours_worked, 6.0)


class TestMarkNoShow(AttendanceTestCase):

    def test_creates_no_show_dated_at_event_start(self):
        self.clock.set(utc(2026, 6, 15, 11, 0))

        record = self.service.mark_no_show(self.event_id, self.volunteer_id, recorded_by="admin", admin_notes="Never arrived")

        self.assertEqual(record.status, 'no_show')
        self.assertEqual(record.attendance, 'absent')
        self.assertEqual(record.hours_worked, 0)
        self.assertEqual(record.admin_notes, "Never arrived")
        self.assertEqual(as_utc(record.participation_date), utc(2026, 6, 15, 9, 0))
        message = self.notifier.sent[0][1]
        self.assertEqual(message.title, "Marked as No-Show")
        self.assertEqual(message.priority, NotificationPriority.HIGH)

    def test_overrides_open_check_in(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.service.mark_no_show(self.event_id, self.volunteer_id)
        self.assertEqual(self.history().status, 'no_show')

    def test_rejected_after_check_out(self):
        self.service.check_in(self.event_id, self.volunteer_id)
        self.clock.advance(hours=1)
        self.service.check_out(self.event_id, self.volunteer_id)

        with self.assertRaises(InvalidTransitionException):
            self.service.mark_no_show(self.event_id, self.volunteer_id)

    def test_notification_can_be_suppressed(self):
        self.service.mark_no_show(self.event_id, self.volunteer_id, send_notification=False)
        self.assertEqual(self.notifier.sent, [])


class TestReadModels(AttendanceTestCase):

    def test_status_for_unassigned_volunteer(self):
        stranger = make_volunteer(self.session, "Fay")
        self.session.commit()

        status = self.service.get_attendance_status(self.event_id, stranger.id)

        self.assertEqual(status, {'assigned': False, 'message': 'Not assigned to this event'})

    def test_status_flags_follow_lifecycle(self):
        self.clock.set(utc(2026, 6, 15, 8, 45))
        before = self.service.get_attendance_status(self.event_id, self.volunteer_id)
        self.assertTrue(before['can_check_in'])
        self.assertFalse(before['can_check_out'])
        self.assertEqual(before['status'], 'registered')

        self.service.check_in(self.event_id, self.volunteer_id)
        during = self.service.get_attendance_status(self.event_id, self.volunteer_id)
        self.assertFalse(during['can_check_in'])
        self.assertTrue(during['can_check_out'])
        self.assertTrue(during['checked_in'])

        self.clock.set(utc(2026, 6, 15, 12, 45))
        self.service.check_out(self.event_id, self.volunteer_id)
        after = self.service.get_attendance_status(self.event_id, self.volunteer_id)
        self.assertFalse(after['can_check_in'])
        self.assertFalse(after['can_check_out'])
        self.assertTrue(after['checked_out'])
        self.assertEqual(after['hours_worked'], 4.0)

    def test_status_outside_window(self):
        self.clock.set(utc(2026, 6, 15, 7, 0))
        status = self.service.get_attendance_status(self.event_id, self.volunteer_id)
        self.assertFalse(status['can_check_in'])

    def test_roster_summary(self):
        event = self.repo.find_event(self.event_id)
        late = make_volunteer(self.session, "Gus")
        absent = make_volunteer(self.session, "Hal")
        waiting = make_volunteer(self.session, "Ivy")
        for volunteer in (late, absent, waiting):
            make_assignment(self.session, volunteer, event, status="confirmed")
        make_history(self.session, late, event, status="confirmed", attendance="late")
        make_history(self.session, absent, event, status="no_show", attendance="absent")
        self.session.commit()

        self.service.check_in(self.event_id, self.volunteer_id)
        roster = self.service.get_event_roster(self.event_id)

        self.assertEqual(roster['event']['title'], "Food Bank Shift")
        self.assertEqual(len(roster['roster']), 4)
        summary = roster['summary']
        self.assertEqual(summary['total'], 4)
        self.assertEqual(summary['present'], 1)
        self.assertEqual(summary['late'], 1)
        self.assertEqual(summary['absent'], 1)
        self.assertEqual(summary['no_show'], 1)
        self.assertEqual(summary['checked_in'], 2)
        self.assertEqual(summary['checked_out'], 0)


if __name__ == '__main__':
    unittest.main()
