#!/usr/bin/env python3
"""Tests for the SQLAlchemy repositories behind VolunteerRepository."""

import unittest

from sqlalchemy.exc import IntegrityError

from database.models import VolunteerHistory
from database.repositories.base import coerce_id
from database.repository import VolunteerRepository
from tests import create_session_factory, create_test_engine, utc
from tests.fixtures.records import make_assignment, make_event, make_history, make_volunteer


class TestVolunteerRepository(unittest.TestCase):

    def setUp(self):
        self.engine = create_test_engine()
        self.Session = create_session_factory(self.engine)
        self.session = self.Session()
        self.repo = VolunteerRepository(self.session)
        self.volunteer = make_volunteer(self.session, "Ana")
        self.event = make_event(self.session, utc(2026, 6, 15, 9), utc(2026, 6, 15, 17))
        self.session.commit()

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def test_lookups_accept_string_ids(self):
        self.assertEqual(self.repo.find_volunteer(str(self.volunteer.id)).name, "Ana")
        self.assertIsNotNone(self.repo.find_event(str(self.event.id)))

    def test_unparsable_id_matches_nothing(self):
        self.assertIsNone(coerce_id("not-a-uuid"))
        self.assertIsNone(self.repo.find_volunteer("not-a-uuid"))

    def test_create_or_update_history(self):
        record, created = self.repo.create_or_update_history(self.volunteer.id, self.event.id, {
            'status': 'confirmed', 'attendance': 'present', 'participation_date': utc(2026, 6, 15, 9),
        })
        self.assertTrue(created)

        again, created = self.repo.create_or_update_history(str(self.volunteer.id), str(self.event.id), {
            'attendance': 'late',
        })
        self.assertFalse(created)
        self.assertEqual(again.id, record.id)
        self.assertEqual(again.attendance, 'late')

    def test_history_unique_per_pair(self):
        make_history(self.session, self.volunteer, self.event)
        self.session.commit()

        self.session.add(VolunteerHistory(
            volunteer_id=self.volunteer.id,
            event_id=self.event.id,
            participation_date=utc(2026, 6, 15, 9),
        ))
        with self.assertRaises(IntegrityError):
            self.session.flush()
        self.session.rollback()

    def test_find_assignment_prefers_live_row(self):
        cancelled = make_assignment(self.session, self.volunteer, self.event, status='cancelled')
        self.assertEqual(self.repo.find_assignment(self.volunteer.id, self.event.id).id, cancelled.id)

        live = make_assignment(self.session, self.volunteer, self.event, status='pending')
        self.assertEqual(self.repo.find_assignment(self.volunteer.id, self.event.id).id, live.id)

    def test_sync_event_volunteer_count(self):
        other = make_volunteer(self.session, "Ben")
        make_assignment(self.session, self.volunteer, self.event, status='confirmed')
        make_assignment(self.session, other, self.event, status='pending')

        self.assertEqual(self.repo.sync_event_volunteer_count(self.event), 1)
        self.assertEqual(self.event.current_volunteers, 1)

    def test_event_lists(self):
        draft = make_event(self.session, utc(2026, 6, 20, 9), utc(2026, 6, 20, 12), status='draft')
        self.session.commit()

        open_ids = {e.id for e in self.repo.list_open_events(utc(2026, 6, 1))}
        self.assertEqual(open_ids, {self.event.id})
        self.assertEqual(self.repo.list_events_to_finalize(utc(2026, 6, 1)), [])

        ended = [e.id for e in self.repo.list_events_to_finalize(utc(2026, 6, 16))]
        self.assertEqual(ended, [self.event.id])
        self.assertEqual([e.id for e in self.repo.list_events_by_status(['draft'])], [draft.id])

    def test_create_notification(self):
        notification = self.repo.create_notification(
            recipient_id=str(self.volunteer.id),
            type='attendance',
            title='Checked in',
            message='Thanks',
            related_event_id=str(self.event.id),
        )
        self.session.commit()

        stored = self.repo.notifications.list_for_recipient(self.volunteer.id, unread_only=True)
        self.assertEqual([n.id for n in stored], [notification.id])
        self.assertEqual(stored[0].priority, 'normal')


if __name__ == '__main__':
    unittest.main()
