from unittest import mock

from django.contrib.admin.sites import AdminSite
from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase

from seating.admin import ReservationAdmin, ReservationTableInline
from seating.models import Reservation, ReservationLog

from .helpers import make_reservation, make_restaurant, make_table

User = get_user_model()


@mock.patch("seating.services.broadcast_allocation")
class ReservationAdminTests(TestCase):
    def setUp(self):
        self.site = AdminSite()
        self.model_admin = ReservationAdmin(Reservation, self.site)
        self.manager = User.objects.create_superuser(username='manager', password='password123')
        self.request = RequestFactory().post('/')
        self.request.user = self.manager

        restaurant = make_restaurant()
        self.t1 = make_table(restaurant, 1, 4)
        self.t2 = make_table(restaurant, 2, 2)
        self.reservation = make_reservation(restaurant, party_size=4, tables=[self.t1])

    def save(self, tables):
        form = mock.Mock(cleaned_data={'reassign_tables': tables})
        self.model_admin.save_model(self.request, self.reservation, form, change=True)

    def test_assignment_inline_is_read_only(self, broadcast):
        inline = ReservationTableInline(Reservation, self.site)
        self.assertFalse(inline.has_add_permission(self.request, self.reservation))
        self.assertFalse(inline.has_delete_permission(self.request, self.reservation))

    def test_reassign_goes_through_override(self, broadcast):
        bigger = make_table(self.reservation.restaurant, 3, 6)
        self.save([bigger])

        self.assertEqual(list(self.reservation.tables.all()), [bigger])
        log = ReservationLog.objects.get(reservation=self.reservation)
        self.assertEqual(log.action_type.name, "TableOverride")
        self.assertEqual(log.actor, self.manager)

    def test_reassign_rejected_when_capacity_short(self, broadcast):
        with mock.patch.object(self.model_admin, 'message_user') as message_user:
            self.save([self.t2])

        message_user.assert_called_once()
        self.assertEqual(list(self.reservation.tables.all()), [self.t1])
        self.assertFalse(ReservationLog.objects.exists())

    def test_saving_without_reassignment_keeps_tables(self, broadcast):
        self.save([])
        self.assertEqual(list(self.reservation.tables.all()), [self.t1])
