from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


# =============================================================================
# === RESTAURANT & FLOOR PLAN =================================================
# =============================================================================

class Restaurant(models.Model):
    name = models.CharField(max_length=100, unique=True)
    timezone = models.CharField(max_length=64, default="UTC")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class TableQuerySet(models.QuerySet):
    def available(self):
        return self.filter(is_available=True)


class Table(models.Model):
    restaurant = models.ForeignKey('Restaurant', on_delete=models.CASCADE, related_name='tables')
    table_number = models.PositiveIntegerField()
    capacity = models.PositiveIntegerField(default=2, validators=[MinValueValidator(1)])
    is_joinable = models.BooleanField(default=False)
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TableQuerySet.as_manager()

    class Meta:
        # Every allocation rule walks tables in this order
        ordering = ['capacity', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['restaurant', 'table_number'],
                name='unique_table_number_per_restaurant',
            ),
        ]

    def __str__(self):
        return f"Table {self.table_number} (Seats: {self.capacity})"


class TableJoin(models.Model):
    """
    An operator-preferred pairing of two joinable tables.

    The pair is unordered: (A, B) and (B, A) describe the same join, so
    uniqueness is checked in both directions in `clean()`.
    """

    primary_table = models.ForeignKey(
        "Table", on_delete=models.CASCADE, related_name="primary_joins"
    )
    joined_table = models.ForeignKey(
        "Table", on_delete=models.CASCADE, related_name="secondary_joins"
    )
    total_capacity = models.PositiveIntegerField(editable=False, default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['total_capacity', 'id']
        constraints = [
            models.CheckConstraint(
                condition=~Q(primary_table=models.F("joined_table")),
                name="table_join_distinct_members",
            ),
            models.UniqueConstraint(
                fields=["primary_table", "joined_table"],
                name="unique_table_join_pair",
            ),
        ]

    def __str__(self):
        return (
            f"Tables {self.primary_table.table_number} + {self.joined_table.table_number} "
            f"({self.total_capacity} seats)"
        )

    @property
    def table_ids(self):
        return (self.primary_table_id, self.joined_table_id)

    def clean(self):
        if self.primary_table_id is None or self.joined_table_id is None:
            return
        primary, joined = self.primary_table, self.joined_table
        if primary.pk == joined.pk:
            raise ValidationError("Cannot join a table to itself.")
        if primary.restaurant_id != joined.restaurant_id:
            raise ValidationError("Joined tables must belong to the same restaurant.")
        if not (primary.is_joinable and joined.is_joinable):
            raise ValidationError("Both tables must be joinable.")
        duplicate = TableJoin.objects.using(primary._state.db or "default").filter(
            Q(primary_table=primary, joined_table=joined)
            | Q(primary_table=joined, joined_table=primary)
        ).exclude(pk=self.pk)
        if duplicate.exists():
            raise ValidationError("Tables already joined.")

    def save(self, *args, **kwargs):
        self.total_capacity = self.primary_table.capacity + self.joined_table.capacity
        super().save(*args, **kwargs)


# =============================================================================
# === CUSTOMERS & GUESTS ======================================================
# =============================================================================

class Person(models.Model):
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True

    def __str__(self):
        return self.full_name or self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class Customer(Person):
    """Registered customer with an account-backed e-mail address."""
    email = models.EmailField(unique=True)


class Guest(Person):
    """One-off guest; walk-ins without an e-mail get a generated address."""
    SYSTEM_EMAIL_DOMAIN = "system.local"

    is_active = models.BooleanField(default=True)

    @property
    def has_system_email(self):
        return self.email.endswith(f"@{self.SYSTEM_EMAIL_DOMAIN}")


# =============================================================================
# === RESERVATIONS ============================================================
# =============================================================================

class ReservationQuerySet(models.QuerySet):
    def holding_tables(self):
        """Reservations that occupy their tables for overlap purposes."""
        return self.exclude(status=Reservation.Status.CANCELLED)

    def pending(self):
        return self.filter(status=Reservation.Status.PENDING)


class Reservation(models.Model):
    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        CONFIRMED = 'CONFIRMED', 'Confirmed'
        SEATED = 'SEATED', 'Seated'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    restaurant = models.ForeignKey('Restaurant', on_delete=models.PROTECT, related_name='reservations')
    customer = models.ForeignKey(
        'Customer', null=True, blank=True, on_delete=models.PROTECT, related_name='reservations'
    )
    guest = models.ForeignKey(
        'Guest', null=True, blank=True, on_delete=models.PROTECT, related_name='reservations'
    )
    reservation_date = models.DateField()
    reservation_time = models.TimeField()
    duration = models.PositiveIntegerField(validators=[MinValueValidator(1)], help_text="Minutes")
    party_size = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    notes = models.TextField(blank=True)
    is_walk_in = models.BooleanField(default=False)
    tables = models.ManyToManyField('Table', through='ReservationTable', related_name='reservations')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['restaurant', 'reservation_date'], name='res_restaurant_date_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(customer__isnull=False, guest__isnull=True)
                    | Q(customer__isnull=True, guest__isnull=False)
                ),
                name='reservation_customer_xor_guest',
            ),
        ]

    def __str__(self):
        return f"Reservation #{self.pk} ({self.party_size} guests, {self.reservation_date} {self.reservation_time:%H:%M})"

    @property
    def start_at(self):
        return datetime.combine(self.reservation_date, self.reservation_time)

    @property
    def end_at(self):
        return self.start_at + timedelta(minutes=self.duration)

    @property
    def contact(self):
        """The customer or guest this reservation belongs to."""
        return self.customer or self.guest

    def overlaps(self, start, end):
        return self.start_at < end and start < self.end_at


class ReservationTable(models.Model):
    reservation = models.ForeignKey(
        'Reservation', on_delete=models.CASCADE, related_name='assignments'
    )
    table = models.ForeignKey('Table', on_delete=models.PROTECT, related_name='assignments')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['reservation', 'table'], name='unique_table_per_reservation'
            ),
        ]

    def __str__(self):
        return f"Reservation #{self.reservation_id} → Table {self.table_id}"


# =============================================================================
# === AUDIT LOG ===============================================================
# =============================================================================

class ActionType(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=300, blank=True)

    def __str__(self):
        return self.name


class ReservationLog(models.Model):
    """
    Append-only audit trail of everything that happens to a reservation.

    `details` carries free text: the allocation strategy description on
    creation, or the before/after table ids on an override.
    """

    reservation = models.ForeignKey(
        'Reservation', on_delete=models.CASCADE, related_name='logs'
    )
    action_type = models.ForeignKey('ActionType', on_delete=models.PROTECT, related_name='logs')
    details = models.TextField(blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='reservation_logs',
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.action_type.name} on reservation #{self.reservation_id}"
