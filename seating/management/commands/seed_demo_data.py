import random
from datetime import time, timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from seating.models import Customer, Reservation, Restaurant, Table, TableJoin

# (table_number, capacity, is_joinable)
FLOOR_PLAN = [
    (1, 2, False),
    (2, 2, True),
    (3, 2, True),
    (4, 4, False),
    (5, 4, True),
    (6, 4, True),
    (7, 6, False),
    (8, 8, False),
]
JOINS = [(2, 3), (5, 6)]

DEMO_CUSTOMERS = [
    ("Awa", "Jallow", "awa@example.com"),
    ("Ming", "Chen", "ming@example.com"),
    ("Lena", "Fischer", "lena@example.com"),
    ("Omar", "Sowe", "omar@example.com"),
]


class Command(BaseCommand):
    help = 'Seed the database with a demo floor plan, customers and pending reservations'

    def add_arguments(self, parser):
        parser.add_argument('--reservations', type=int, default=6, help='Pending reservations to create')

    @transaction.atomic
    def handle(self, *args, **options):
        restaurant, _ = Restaurant.objects.get_or_create(name=settings.SEATING['RESTAURANT_NAME'])

        # Create tables
        tables = {}
        for number, capacity, joinable in FLOOR_PLAN:
            table, created = Table.objects.get_or_create(
                restaurant=restaurant, table_number=number,
                defaults={'capacity': capacity, 'is_joinable': joinable},
            )
            tables[number] = table
            if created:
                self.stdout.write(f"Created Table {number} (capacity={capacity}, joinable={joinable})")

        # Create staff
        User = get_user_model()
        manager, created = User.objects.get_or_create(
            username='manager', defaults={'is_staff': True}
        )
        if created:
            manager.set_password('password')
            manager.save()

        # Configure joins
        for a, b in JOINS:
            if not TableJoin.objects.filter(primary_table=tables[a], joined_table=tables[b]).exists():
                TableJoin.objects.create(
                    primary_table=tables[a], joined_table=tables[b], created_by=manager
                )
                self.stdout.write(f"Joined Tables {a} + {b}")

        customers = [
            Customer.objects.get_or_create(
                email=email, defaults={'first_name': first, 'last_name': last}
            )[0]
            for first, last, email in DEMO_CUSTOMERS
        ]

        # Pending reservations for tomorrow evening, left for auto-allocation
        tomorrow = timezone.localdate() + timedelta(days=1)
        for _ in range(options['reservations']):
            Reservation.objects.create(
                restaurant=restaurant,
                customer=random.choice(customers),
                reservation_date=tomorrow,
                reservation_time=time(random.choice([18, 19, 20]), random.choice([0, 30])),
                duration=settings.SEATING['DEFAULT_DURATION_MINUTES'],
                party_size=random.randint(1, 10),
                created_by=manager,
            )

        self.stdout.write(self.style.SUCCESS(
            f"Seeded {restaurant.name}: {len(tables)} tables, {len(JOINS)} joins, "
            f"{options['reservations']} pending reservations"
        ))
