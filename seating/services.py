"""
Table allocation service: finding tables, writing reservations, the FIFO
auto-allocation sweep and manager overrides.

All store access goes through the database alias given at construction, and
every multi-row write runs inside `transaction.atomic(using=alias)`. Tables
are locked with SELECT ... FOR UPDATE and re-checked for overlap inside that
transaction, so two requests racing for the same slot cannot both commit.
"""

import logging
from dataclasses import asdict, dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from .allocation import MAX_GROUP_SIZE, AllocationContext, AllocationResult, select_allocation
from .availability import conflicting_table_ids, find_available_tables
from .exceptions import (
    AllocationError,
    NoAvailabilityError,
    ReservationPersistenceError,
    TableConflictError,
)
from .models import ActionType, Reservation, ReservationLog, ReservationTable, Table, TableJoin
from .notifications import EmailNotifier, build_allocation_email
from .utils import broadcast_allocation

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


@dataclass
class AllocationDetail:
    reservation_id: int
    party_size: int
    table_ids: list = field(default_factory=list)
    message: str = ""


@dataclass
class AutoAllocationSummary:
    allocated: int = 0
    failed: int = 0
    skipped: int = 0
    message: str = ""
    allocated_reservations: list = field(default_factory=list)
    failed_reservations: list = field(default_factory=list)
    skipped_reservations: list = field(default_factory=list)

    def record_allocated(self, reservation, allocation):
        self.allocated += 1
        self.allocated_reservations.append(AllocationDetail(
            reservation.pk, reservation.party_size, list(allocation.table_ids), allocation.description
        ))

    def record_failed(self, reservation, message):
        self.failed += 1
        self.failed_reservations.append(AllocationDetail(reservation.pk, reservation.party_size, message=message))

    def record_skipped(self, reservation, message):
        self.skipped += 1
        self.skipped_reservations.append(AllocationDetail(reservation.pk, reservation.party_size, message=message))

    def as_dict(self):
        return asdict(self)


class TableAllocationService:
    """
    Entry point for every allocation operation.

    Args:
        using (str): Database alias acting as the reservation store.
        notifier: Object with `send_email(address, subject, body)`.
        clock (callable): Returns the current aware UTC datetime.
    """

    def __init__(self, using="default", notifier=None, clock=None, max_group_size=None):
        self.using = using
        self.notifier = notifier if notifier is not None else EmailNotifier()
        self.clock = clock or timezone.now
        self.max_group_size = max_group_size or settings.SEATING.get("MAX_GROUP_SIZE", MAX_GROUP_SIZE)

    # --------------------------------------------------------------------------
    # Finding tables
    # --------------------------------------------------------------------------
    def find_best_allocation(self, restaurant_id, reservation_date, reservation_time, duration,
                             party_size, exclude_reservation_id=None):
        """Run the allocation cascade for one slot. Never raises for business failures."""
        if party_size <= 0:
            return AllocationResult.failure("Party size must be at least 1.")
        if duration <= 0:
            return AllocationResult.failure("Duration must be positive.")

        logger.info(
            "Finding allocation for party of %d on %s at %s for %d minutes",
            party_size, reservation_date, reservation_time, duration,
        )

        try:
            tables = find_available_tables(
                restaurant_id, reservation_date, reservation_time, duration,
                using=self.using, exclude_reservation_id=exclude_reservation_id,
            )
        except NoAvailabilityError as exc:
            return AllocationResult.failure(str(exc))

        joins = list(
            TableJoin.objects.using(self.using)
            .filter(primary_table__restaurant_id=restaurant_id)
            .order_by("id")
        )
        ctx = AllocationContext(tables, joins, party_size, self.max_group_size)
        return select_allocation(ctx)

    # --------------------------------------------------------------------------
    # Writing reservations
    # --------------------------------------------------------------------------
    def create_reservation(self, allocation, *, restaurant_id, reservation_date, reservation_time,
                           duration, party_size, customer_id=None, guest_id=None, notes="",
                           status=Reservation.Status.CONFIRMED, is_walk_in=False, actor=None):
        """
        Persist a reservation and its table assignments atomically.

        Raises AllocationError if `allocation` is not a success, and
        ReservationPersistenceError (with the cause chained) if the write
        fails or a table was booked in the meantime.
        """
        if not allocation.success or not allocation.table_ids:
            raise AllocationError(allocation.error_message or "No tables were allocated.")
        if (customer_id is None) == (guest_id is None):
            raise ValueError("A reservation needs exactly one of customer or guest.")

        now = self.clock()
        try:
            with transaction.atomic(using=self.using):
                self._lock_tables(allocation.table_ids, reservation_date, reservation_time, duration)
                reservation = Reservation.objects.using(self.using).create(
                    restaurant_id=restaurant_id,
                    customer_id=customer_id,
                    guest_id=guest_id,
                    reservation_date=reservation_date,
                    reservation_time=reservation_time,
                    duration=duration,
                    party_size=party_size,
                    status=status,
                    notes=notes or "",
                    is_walk_in=is_walk_in,
                    created_by=actor,
                    updated_by=actor,
                    created_at=now,
                )
                self._assign_tables(reservation, allocation.table_ids, actor)
                self._log_action(reservation, "Created", allocation.description, actor)
        except (DatabaseError, TableConflictError) as exc:
            logger.error("Failed to create reservation with allocation: %s", exc, exc_info=True)
            raise ReservationPersistenceError(f"Could not save reservation: {exc}") from exc

        logger.info(
            "Reservation %s created successfully. Strategy: %s, Tables: %s",
            reservation.pk, allocation.description, allocation.table_ids,
        )
        self._notify_allocation(reservation, allocation.description)
        broadcast_allocation(reservation, allocation.table_numbers, "allocated")
        return reservation

    def book(self, *, restaurant_id, reservation_date, reservation_time, party_size, duration=None,
             customer_id=None, guest_id=None, notes="", status=Reservation.Status.CONFIRMED,
             is_walk_in=False, actor=None):
        """Find tables and, when that succeeds, write the reservation. Returns (allocation, reservation)."""
        if duration is None:
            duration = settings.SEATING["DEFAULT_DURATION_MINUTES"]

        allocation = self.find_best_allocation(
            restaurant_id, reservation_date, reservation_time, duration, party_size
        )
        if not allocation.success:
            return allocation, None

        reservation = self.create_reservation(
            allocation,
            restaurant_id=restaurant_id,
            reservation_date=reservation_date,
            reservation_time=reservation_time,
            duration=duration,
            party_size=party_size,
            customer_id=customer_id,
            guest_id=guest_id,
            notes=notes,
            status=status,
            is_walk_in=is_walk_in,
            actor=actor,
        )
        return allocation, reservation

    # --------------------------------------------------------------------------
    # FIFO sweep
    # --------------------------------------------------------------------------
    def auto_allocate_pending_reservations(self, actor=None):
        """
        Allocate tables to every Pending reservation, oldest first.

        A reservation that cannot be placed, or that raises, is recorded as
        failed and the sweep moves on. Successful reservations are confirmed
        without e-mailing the guest.
        """
        summary = AutoAllocationSummary()
        pending = list(
            Reservation.objects.using(self.using).pending().order_by("created_at", "id")
        )

        if not pending:
            summary.message = "No pending reservations found."
            logger.info("Auto-allocation: No pending reservations")
            return summary

        logger.info("Auto-allocation: Processing %d pending reservations in order", len(pending))

        for reservation in pending:
            try:
                skip_reason = self._sweep_skip_reason(reservation)
                if skip_reason:
                    summary.record_skipped(reservation, skip_reason)
                    continue

                allocation = self.find_best_allocation(
                    reservation.restaurant_id,
                    reservation.reservation_date,
                    reservation.reservation_time,
                    reservation.duration,
                    reservation.party_size,
                )
                if not allocation.success:
                    summary.record_failed(reservation, allocation.error_message)
                    logger.warning(
                        "Failed to auto-allocate reservation %s: %s",
                        reservation.pk, allocation.error_message,
                    )
                    continue

                with transaction.atomic(using=self.using):
                    # Staff or another sweep may have touched it since the list was read
                    reservation = (
                        Reservation.objects.using(self.using)
                        .select_for_update()
                        .get(pk=reservation.pk)
                    )
                    skip_reason = self._sweep_skip_reason(reservation)
                    if not skip_reason:
                        self._lock_tables(
                            allocation.table_ids,
                            reservation.reservation_date,
                            reservation.reservation_time,
                            reservation.duration,
                        )
                        self._assign_tables(reservation, allocation.table_ids, actor)
                        reservation.status = Reservation.Status.CONFIRMED
                        reservation.updated_by = actor
                        reservation.save(update_fields=["status", "updated_by", "updated_at"])
                        self._log_action(reservation, "AutoAllocated", allocation.description, actor)

                if skip_reason:
                    summary.record_skipped(reservation, skip_reason)
                    logger.info("Auto-allocation skipped reservation %s: %s", reservation.pk, skip_reason)
                    continue

                summary.record_allocated(reservation, allocation)
                logger.info("Auto-allocated reservation %s: %s", reservation.pk, allocation.description)
                broadcast_allocation(reservation, allocation.table_numbers, "auto_allocated")
            except Exception as exc:
                summary.record_failed(reservation, f"Error: {exc}")
                logger.exception("Exception during auto-allocation for reservation %s", reservation.pk)

        summary.message = (
            f"Processed {len(pending)} reservations: {summary.allocated} allocated, "
            f"{summary.failed} failed, {summary.skipped} skipped."
        )
        logger.info("Auto-allocation completed: %s", summary.message)
        return summary

    # --------------------------------------------------------------------------
    # Manager operations
    # --------------------------------------------------------------------------
    def override_table_assignment(self, reservation_id, new_table_ids, actor=None):
        """
        Replace a reservation's tables with an operator-chosen set.

        The new tables must exist, be available, belong to the reservation's
        restaurant and seat the whole party. Overlap with other reservations
        is deliberately not checked. Returns True on success.
        """
        new_table_ids = list(dict.fromkeys(new_table_ids))
        if not new_table_ids:
            logger.warning("Override for reservation %s has no tables", reservation_id)
            return False

        try:
            with transaction.atomic(using=self.using):
                reservation = (
                    Reservation.objects.using(self.using)
                    .select_for_update()
                    .filter(pk=reservation_id)
                    .first()
                )
                if reservation is None:
                    logger.warning("Reservation %s not found for override", reservation_id)
                    return False

                tables = {
                    t.pk: t for t in Table.objects.using(self.using).select_for_update().filter(
                        pk__in=new_table_ids,
                        is_available=True,
                        restaurant_id=reservation.restaurant_id,
                    )
                }
                if len(tables) != len(new_table_ids):
                    logger.warning("Some tables in override are not available")
                    return False

                total_capacity = sum(t.capacity for t in tables.values())
                if total_capacity < reservation.party_size:
                    logger.warning(
                        "Override tables insufficient capacity: %d < %d",
                        total_capacity, reservation.party_size,
                    )
                    return False

                old_table_ids = list(
                    reservation.assignments.order_by("table_id").values_list("table_id", flat=True)
                )
                reservation.assignments.all().delete()
                self._assign_tables(reservation, new_table_ids, actor)
                reservation.updated_by = actor
                reservation.save(update_fields=["updated_by", "updated_at"])
                self._log_action(
                    reservation,
                    "TableOverride",
                    f"Changed from {_id_list(old_table_ids)} to {_id_list(new_table_ids)}",
                    actor,
                )
        except DatabaseError:
            logger.exception("Failed to override table assignment for reservation %s", reservation_id)
            return False

        logger.info("Table assignment overridden for reservation %s by %s", reservation_id, actor or "system")
        broadcast_allocation(
            reservation, [tables[pk].table_number for pk in new_table_ids], "overridden"
        )
        return True

    def update_reservation_status(self, reservation_id, status, actor=None):
        if status not in Reservation.Status.values:
            raise ValidationError(f"Invalid status: {status}")

        with transaction.atomic(using=self.using):
            reservation = (
                Reservation.objects.using(self.using).select_for_update().get(pk=reservation_id)
            )
            old_label = reservation.get_status_display()
            reservation.status = status
            reservation.updated_by = actor
            reservation.save(update_fields=["status", "updated_by", "updated_at"])
            self._log_action(
                reservation, "StatusChanged",
                f"From {old_label} to {reservation.get_status_display()}", actor,
            )
        return reservation

    def create_table_join(self, primary_table_id, joined_table_id, actor=None):
        """Configure a preferred join. Raises ValidationError when the pair is not allowed."""
        tables = Table.objects.using(self.using).in_bulk([primary_table_id, joined_table_id])
        if primary_table_id not in tables:
            raise ValidationError("Primary table not found.")
        if joined_table_id not in tables:
            raise ValidationError("Joined table not found.")

        join = TableJoin(
            primary_table=tables[primary_table_id],
            joined_table=tables[joined_table_id],
            created_by=actor,
        )
        join.clean()
        join.save(using=self.using)
        logger.info("Configured join %s", join)
        return join

    # --------------------------------------------------------------------------
    # Helpers
    # --------------------------------------------------------------------------
    def _lock_tables(self, table_ids, reservation_date, reservation_time, duration,
                     exclude_reservation_id=None):
        locked = list(
            Table.objects.using(self.using).select_for_update().filter(pk__in=table_ids)
        )
        usable = {t.pk for t in locked if t.is_available}
        missing = [pk for pk in table_ids if pk not in usable]
        if missing:
            raise TableConflictError(missing, message="Table(s) {} are no longer available.")

        conflicts = conflicting_table_ids(
            table_ids, reservation_date, reservation_time, duration,
            using=self.using, exclude_reservation_id=exclude_reservation_id,
        )
        if conflicts:
            raise TableConflictError(conflicts, reservation_id=exclude_reservation_id)
        return locked

    def _sweep_skip_reason(self, reservation):
        if reservation.status != Reservation.Status.PENDING:
            return f"No longer pending ({reservation.get_status_display()})"
        if ReservationTable.objects.using(self.using).filter(reservation=reservation).exists():
            return "Already has tables assigned"
        return None

    def _assign_tables(self, reservation, table_ids, actor):
        ReservationTable.objects.using(self.using).bulk_create([
            ReservationTable(reservation=reservation, table_id=pk, created_by=actor)
            for pk in table_ids
        ])

    def _log_action(self, reservation, action_name, details, actor):
        action_type, _ = ActionType.objects.using(self.using).get_or_create(
            name=action_name, defaults={"description": f"Reservation {action_name}"}
        )
        entry = ReservationLog.objects.using(self.using).create(
            reservation=reservation,
            action_type=action_type,
            details=details or "",
            actor=actor,
            created_at=self.clock(),
        )
        audit_logger.info(
            "%s reservation #%s by %s: %s",
            action_name, reservation.pk, getattr(actor, "username", None) or "system", details,
        )
        return entry

    def _notify_allocation(self, reservation, description):
        contact = reservation.contact
        if contact is None or not contact.email:
            return
        if reservation.guest_id and reservation.guest.has_system_email:
            logger.debug("Skipping e-mail for walk-in guest with generated address")
            return

        try:
            subject, body = build_allocation_email(reservation, description)
            self.notifier.send_email(contact.email, subject, body)
        except Exception as exc:
            logger.warning(
                "Failed to send allocation email for reservation %s: %s", reservation.pk, exc
            )


def _id_list(ids):
    return "[" + ", ".join(str(pk) for pk in ids) + "]"
