from datetime import datetime, time, timedelta

from django.test import SimpleTestCase, TestCase

from seating.availability import (
    NO_TABLES_CONFIGURED,
    NO_TABLES_FREE,
    conflicting_table_ids,
    find_available_tables,
)
from seating.exceptions import NoAvailabilityError
from seating.models import Reservation

from .helpers import DAY, make_reservation, make_restaurant, make_table


class ReservationOverlapTests(SimpleTestCase):
    def test_half_open_windows(self):
        reservation = Reservation(reservation_date=DAY, reservation_time=time(18, 0), duration=90)
        start = datetime.combine(DAY, time(19, 0))
        self.assertTrue(reservation.overlaps(start, start + timedelta(minutes=30)))
        # Ends exactly when the next one starts
        self.assertFalse(reservation.overlaps(start + timedelta(minutes=30), start + timedelta(hours=2)))
        self.assertFalse(reservation.overlaps(start - timedelta(hours=3), start - timedelta(hours=1)))


class FindAvailableTablesTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.small = make_table(self.restaurant, 1, 2)
        self.large = make_table(self.restaurant, 2, 6)
        self.booked = make_reservation(
            self.restaurant, tables=[self.small], reservation_time=time(18, 0), duration=90
        )

    def free_ids(self, start, duration=90, **kwargs):
        tables = find_available_tables(self.restaurant.pk, DAY, start, duration, **kwargs)
        return [t.pk for t in tables]

    def test_overlapping_reservation_blocks_table(self):
        self.assertEqual(self.free_ids(time(19, 0)), [self.large.pk])

    def test_back_to_back_slots_do_not_conflict(self):
        self.assertEqual(self.free_ids(time(19, 30)), [self.small.pk, self.large.pk])
        self.assertEqual(self.free_ids(time(16, 30)), [self.small.pk, self.large.pk])

    def test_other_dates_are_ignored(self):
        tables = find_available_tables(self.restaurant.pk, DAY + timedelta(days=1), time(18, 0), 90)
        self.assertEqual(len(tables), 2)

    def test_cancelled_reservations_free_their_tables(self):
        self.booked.status = Reservation.Status.CANCELLED
        self.booked.save()
        self.assertIn(self.small.pk, self.free_ids(time(18, 0)))

    def test_holding_tables_excludes_cancelled(self):
        cancelled = make_reservation(self.restaurant, status=Reservation.Status.CANCELLED)
        holding = Reservation.objects.holding_tables()
        self.assertIn(self.booked, holding)
        self.assertNotIn(cancelled, holding)

    def test_excluded_reservation_does_not_block(self):
        self.assertIn(
            self.small.pk, self.free_ids(time(18, 0), exclude_reservation_id=self.booked.pk)
        )

    def test_unavailable_tables_are_skipped(self):
        self.large.is_available = False
        self.large.save()
        self.assertEqual(self.free_ids(time(21, 0)), [self.small.pk])

    def test_ordered_by_capacity(self):
        extra = make_table(self.restaurant, 3, 4)
        self.assertEqual(self.free_ids(time(21, 0)), [self.small.pk, extra.pk, self.large.pk])

    def test_every_table_booked(self):
        make_reservation(self.restaurant, tables=[self.large], reservation_time=time(18, 30))
        with self.assertRaisesMessage(NoAvailabilityError, NO_TABLES_FREE):
            find_available_tables(self.restaurant.pk, DAY, time(18, 45), 60)

    def test_restaurant_without_tables(self):
        empty = make_restaurant("Empty Room")
        with self.assertRaisesMessage(NoAvailabilityError, NO_TABLES_CONFIGURED):
            find_available_tables(empty.pk, DAY, time(18, 0), 90)

    def test_conflicting_table_ids(self):
        conflicts = conflicting_table_ids([self.small.pk, self.large.pk], DAY, time(19, 0), 30)
        self.assertEqual(conflicts, [self.small.pk])
