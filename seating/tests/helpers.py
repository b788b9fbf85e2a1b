from datetime import date, time
from itertools import count

from django.utils import timezone

from seating.models import Customer, Guest, Reservation, ReservationTable, Restaurant, Table, TableJoin

DAY = date(2030, 5, 1)
EVENING = time(19, 0)

_emails = count(1)


def make_restaurant(name="Fine O Dine"):
    return Restaurant.objects.create(name=name)


def make_table(restaurant, number, capacity, joinable=False, available=True):
    return Table.objects.create(
        restaurant=restaurant,
        table_number=number,
        capacity=capacity,
        is_joinable=joinable,
        is_available=available,
    )


def make_join(a, b):
    return TableJoin.objects.create(primary_table=a, joined_table=b)


def make_customer(**kwargs):
    kwargs.setdefault("email", f"customer{next(_emails)}@example.com")
    kwargs.setdefault("first_name", "Awa")
    kwargs.setdefault("last_name", "Jallow")
    return Customer.objects.create(**kwargs)


def make_guest(**kwargs):
    return Guest.objects.create(**kwargs)


def make_reservation(restaurant, party_size=2, tables=(), reservation_time=EVENING, duration=90,
                     reservation_date=DAY, status=Reservation.Status.CONFIRMED, customer=None,
                     created_at=None):
    reservation = Reservation.objects.create(
        restaurant=restaurant,
        customer=customer or make_customer(),
        reservation_date=reservation_date,
        reservation_time=reservation_time,
        duration=duration,
        party_size=party_size,
        status=status,
        created_at=created_at or timezone.now(),
    )
    for table in tables:
        ReservationTable.objects.create(reservation=reservation, table=table)
    return reservation
