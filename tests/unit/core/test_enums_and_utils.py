#!/usr/bin/env python3
"""Tests for boundary enum normalisation and shared helpers."""

import threading
import time
import unittest

from core.attendance import KeyedLock
from core.enums import (
    AttendanceType, DayOfWeek, EventStatus, ParticipationStatus, Proficiency, UrgencyLevel,
)
from core.exceptions import NotFoundException, ValidationException
from core.utils import calculate_hours_worked, haversine_km, round_half_up
from tests import utc


class TestEnums(unittest.TestCase):

    def test_parse_normalises_case_and_separators(self):
        self.assertEqual(ParticipationStatus.parse('NO_SHOW'), ParticipationStatus.NO_SHOW)
        self.assertEqual(ParticipationStatus.parse('no-show'), ParticipationStatus.NO_SHOW)
        self.assertEqual(EventStatus.parse('In Progress'), EventStatus.IN_PROGRESS)
        self.assertEqual(AttendanceType.parse(AttendanceType.LATE), AttendanceType.LATE)

    def test_urgency_aliases_and_order(self):
        self.assertEqual(UrgencyLevel.parse('medium'), UrgencyLevel.NORMAL)
        self.assertEqual(UrgencyLevel.parse('CRITICAL'), UrgencyLevel.URGENT)
        ranks = [UrgencyLevel.parse(u).rank for u in ('low', 'normal', 'high', 'urgent')]
        self.assertEqual(ranks, sorted(ranks))

    def test_proficiency_order(self):
        self.assertLess(Proficiency.BEGINNER.rank, Proficiency.EXPERT.rank)

    def test_day_aliases(self):
        self.assertEqual(DayOfWeek.parse('Sat'), DayOfWeek.SATURDAY)
        self.assertEqual(DayOfWeek.MONDAY.weekday, 0)
        self.assertEqual(DayOfWeek.SUNDAY.weekday, 6)

    def test_invalid_values(self):
        for bad in ('guru', '', None, 3):
            with self.assertRaises(ValidationException):
                Proficiency.parse(bad)


class TestUtils(unittest.TestCase):

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(97.5), 98)
        self.assertEqual(round_half_up(97.49), 97)

    def test_hours_worked(self):
        self.assertEqual(calculate_hours_worked(utc(2026, 6, 15, 9), utc(2026, 6, 15, 13, 30)), 4.5)
        self.assertEqual(calculate_hours_worked(utc(2026, 6, 15, 13), utc(2026, 6, 15, 9)), 0.0)

    def test_haversine(self):
        # London to Paris, about 344 km
        self.assertAlmostEqual(haversine_km(51.5074, -0.1278, 48.8566, 2.3522), 344, delta=2)

    def test_not_found_message(self):
        self.assertEqual(str(NotFoundException("Event", "e1")), "Event not found: e1")


class TestKeyedLock(unittest.TestCase):

    def test_same_key_is_serialised(self):
        locks = KeyedLock()
        active = []
        overlaps = []

        def worker():
            with locks.hold(('pair', 'v1', 'e1')):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(overlaps, [])
        self.assertEqual(len(locks), 0)

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        with locks.hold('a'):
            acquired = threading.Event()

            def other():
                with locks.hold('b'):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            self.assertTrue(acquired.wait(timeout=2))
            t.join()
            self.assertEqual(len(locks), 1)


if __name__ == '__main__':
    unittest.main()
