from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from seating.models import Reservation, ReservationLog, Restaurant, Table, TableJoin

from .helpers import make_reservation, make_restaurant, make_table

User = get_user_model()


@mock.patch("seating.services.broadcast_allocation")
class AutoAllocatePendingCommandTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        make_table(self.restaurant, 1, 4)

    def test_prints_summary(self, broadcast):
        make_reservation(self.restaurant, party_size=2, status=Reservation.Status.PENDING)
        out = StringIO()
        call_command('auto_allocate_pending', stdout=out)
        self.assertIn("Processed 1 reservations: 1 allocated, 0 failed, 0 skipped.", out.getvalue())

    def test_actor_recorded(self, broadcast):
        manager = User.objects.create_user(username='manager', password='password123')
        reservation = make_reservation(self.restaurant, party_size=2, status=Reservation.Status.PENDING)
        call_command('auto_allocate_pending', actor='manager', stdout=StringIO())
        self.assertEqual(ReservationLog.objects.get(reservation=reservation).actor, manager)

    def test_unknown_actor(self, broadcast):
        with self.assertRaises(CommandError):
            call_command('auto_allocate_pending', actor='nobody', stdout=StringIO())

    def test_nothing_pending(self, broadcast):
        out = StringIO()
        call_command('auto_allocate_pending', stdout=out)
        self.assertIn("No pending reservations found.", out.getvalue())


class SeedDemoDataCommandTests(TestCase):
    def test_seed_is_repeatable(self):
        call_command('seed_demo_data', reservations=3, stdout=StringIO())
        call_command('seed_demo_data', reservations=3, stdout=StringIO())

        self.assertEqual(Restaurant.objects.count(), 1)
        self.assertEqual(Table.objects.count(), 8)
        self.assertEqual(TableJoin.objects.count(), 2)
        self.assertEqual(Reservation.objects.pending().count(), 6)
        self.assertTrue(User.objects.get(username='manager').is_staff)
