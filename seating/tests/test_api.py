from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from seating.exceptions import ReservationPersistenceError
from seating.models import Reservation
from seating.services import TableAllocationService

from .helpers import DAY, make_customer, make_guest, make_reservation, make_restaurant, make_table

User = get_user_model()


@mock.patch("seating.services.broadcast_allocation")
class SeatingAPITests(APITestCase):
    def setUp(self):
        self.host = User.objects.create_user(username='host', password='password123')
        self.manager = User.objects.create_user(
            username='manager', password='password123', is_staff=True
        )
        self.restaurant = make_restaurant()
        self.table = make_table(self.restaurant, 4, 4)
        self.customer = make_customer()
        self.client.force_authenticate(self.host)

    def slot(self, **extra):
        payload = {
            'restaurant': self.restaurant.pk,
            'reservation_date': DAY.isoformat(),
            'reservation_time': '19:00',
            'party_size': 4,
        }
        payload.update(extra)
        return payload

    # --------------------------------------------------------------------------
    # ALLOCATION & BOOKING
    # --------------------------------------------------------------------------
    def test_allocation_preview(self, broadcast):
        response = self.client.post(reverse('seating:allocation'), self.slot(), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['table_numbers'], [4])
        self.assertFalse(Reservation.objects.exists())

    def test_allocation_requires_login(self, broadcast):
        self.client.force_authenticate(None)
        response = self.client.post(reverse('seating:allocation'), self.slot(), format='json')
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_invalid_party_size(self, broadcast):
        response = self.client.post(reverse('seating:allocation'), self.slot(party_size=0), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_reservation(self, broadcast):
        response = self.client.post(
            reverse('seating:reservation-create'),
            self.slot(customer=self.customer.pk, notes='Birthday'),
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['allocation']['strategy'], 'exact_fit')
        reservation = Reservation.objects.get(pk=response.data['reservation']['id'])
        self.assertEqual(reservation.created_by, self.host)
        self.assertEqual(reservation.notes, 'Birthday')
        self.assertEqual(response.data['reservation']['tables'][0]['table_number'], 4)

    def test_create_reservation_conflict(self, broadcast):
        make_reservation(self.restaurant, tables=[self.table])
        response = self.client.post(
            reverse('seating:reservation-create'), self.slot(customer=self.customer.pk), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('No tables are available', response.data['error'])

    def test_create_reservation_persistence_failure(self, broadcast):
        with mock.patch.object(
            TableAllocationService, 'create_reservation',
            side_effect=ReservationPersistenceError('Could not save reservation: locked'),
        ):
            response = self.client.post(
                reverse('seating:reservation-create'), self.slot(customer=self.customer.pk), format='json'
            )
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_create_reservation_unknown_contact(self, broadcast):
        for field in ('customer', 'guest'):
            response = self.client.post(
                reverse('seating:reservation-create'), self.slot(**{field: 999999}), format='json'
            )
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn(field, response.data)
        self.assertFalse(Reservation.objects.exists())

    def test_create_reservation_for_guest(self, broadcast):
        guest = make_guest(first_name='Omar', email='omar@example.com')
        response = self.client.post(
            reverse('seating:reservation-create'), self.slot(guest=guest.pk), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['reservation']['guest'], guest.pk)

    def test_create_reservation_needs_one_contact(self, broadcast):
        response = self.client.post(reverse('seating:reservation-create'), self.slot(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    # --------------------------------------------------------------------------
    # MANAGER ACTIONS
    # --------------------------------------------------------------------------
    def test_auto_allocate_requires_staff(self, broadcast):
        response = self.client.post(reverse('seating:auto-allocate'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_auto_allocate(self, broadcast):
        make_reservation(
            self.restaurant, party_size=3, status=Reservation.Status.PENDING,
            created_at=timezone.now() - timedelta(minutes=5),
        )
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse('seating:auto-allocate'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['allocated'], 1)
        self.assertEqual(response.data['failed'], 0)

    def test_override(self, broadcast):
        reservation = make_reservation(self.restaurant, party_size=4, tables=[self.table])
        bigger = make_table(self.restaurant, 8, 6)
        self.client.force_authenticate(self.manager)

        url = reverse('seating:reservation-override', args=[reservation.pk])
        response = self.client.post(url, {'table_ids': [bigger.pk]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True})
        self.assertEqual(list(reservation.tables.all()), [bigger])

    def test_override_rejected(self, broadcast):
        reservation = make_reservation(self.restaurant, party_size=4, tables=[self.table])
        small = make_table(self.restaurant, 1, 2)
        self.client.force_authenticate(self.manager)

        url = reverse('seating:reservation-override', args=[reservation.pk])
        response = self.client.post(url, {'table_ids': [small.pk]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'success': False})

    def test_override_requires_staff(self, broadcast):
        reservation = make_reservation(self.restaurant, tables=[self.table])
        url = reverse('seating:reservation-override', args=[reservation.pk])
        response = self.client.post(url, {'table_ids': [self.table.pk]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_change(self, broadcast):
        reservation = make_reservation(self.restaurant, tables=[self.table])
        url = reverse('seating:reservation-status', args=[reservation.pk])
        response = self.client.post(url, {'status': 'CANCELLED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status_display'], 'Cancelled')

    def test_status_change_invalid(self, broadcast):
        reservation = make_reservation(self.restaurant)
        url = reverse('seating:reservation-status', args=[reservation.pk])
        response = self.client.post(url, {'status': 'LOST'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_change_missing_reservation(self, broadcast):
        url = reverse('seating:reservation-status', args=[999999])
        response = self.client.post(url, {'status': 'SEATED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
