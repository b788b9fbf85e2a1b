"""
Availability filter: which tables of a restaurant are free for a time slot.

Windows are half-open, `[start, start + duration)`, so a reservation ending
at 19:00 does not block one starting at 19:00. Only reservations on the same
calendar date are considered, and cancelled reservations never hold a table.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta

from .exceptions import NoAvailabilityError
from .models import Reservation, ReservationTable, Table

logger = logging.getLogger(__name__)

NO_TABLES_CONFIGURED = "No tables available at this restaurant."
NO_TABLES_FREE = "No tables are available for the selected time slot."


def slot_window(reservation_date, reservation_time, duration):
    start = datetime.combine(reservation_date, reservation_time)
    return start, start + timedelta(minutes=duration)


def booked_windows(table_ids, reservation_date, using="default", exclude_reservation_id=None):
    """
    Map table id -> list of table-holding reservations on `reservation_date`.
    """
    holding = (
        Reservation.objects.using(using)
        .holding_tables()
        .filter(reservation_date=reservation_date)
    )
    if exclude_reservation_id is not None:
        holding = holding.exclude(pk=exclude_reservation_id)

    assignments = (
        ReservationTable.objects.using(using)
        .filter(table_id__in=list(table_ids), reservation__in=holding)
        .select_related("reservation")
    )

    windows = defaultdict(list)
    for assignment in assignments:
        windows[assignment.table_id].append(assignment.reservation)
    return windows


def conflicting_table_ids(table_ids, reservation_date, reservation_time, duration,
                          using="default", exclude_reservation_id=None):
    """Return the subset of `table_ids` already booked during the slot."""
    start, end = slot_window(reservation_date, reservation_time, duration)
    windows = booked_windows(table_ids, reservation_date, using, exclude_reservation_id)
    conflicts = []
    for table_id in table_ids:
        for reservation in windows.get(table_id, ()):
            if reservation.overlaps(start, end):
                logger.debug(
                    "Table %s conflicts with reservation %s", table_id, reservation.pk
                )
                conflicts.append(table_id)
                break
    return conflicts


def find_available_tables(restaurant_id, reservation_date, reservation_time, duration,
                          using="default", exclude_reservation_id=None):
    """
    Return the restaurant's free tables for the slot, ordered by capacity then id.

    Raises NoAvailabilityError when the restaurant has no available tables at
    all, or when every one of them is booked during the slot.
    """
    tables = list(
        Table.objects.using(using)
        .filter(restaurant_id=restaurant_id)
        .available()
        .order_by("capacity", "id")
    )
    if not tables:
        logger.warning("No tables found for restaurant %s", restaurant_id)
        raise NoAvailabilityError(NO_TABLES_CONFIGURED)

    taken = set(conflicting_table_ids(
        [t.pk for t in tables], reservation_date, reservation_time, duration,
        using=using, exclude_reservation_id=exclude_reservation_id,
    ))
    free = [t for t in tables if t.pk not in taken]

    if not free:
        start, end = slot_window(reservation_date, reservation_time, duration)
        logger.warning("No available tables for time slot %s - %s", start, end)
        raise NoAvailabilityError(NO_TABLES_FREE)

    logger.info("Found %d available tables", len(free))
    return free
