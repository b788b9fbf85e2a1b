class SeatingError(Exception):
    """Base class for table allocation errors."""


class NoAvailabilityError(SeatingError):
    """No table is free for the requested restaurant/time slot."""


class AllocationError(SeatingError):
    """An unsuccessful allocation was handed to a writer."""


class TableConflictError(SeatingError):
    """A table was booked by someone else between the search and the write."""

    default_message = "Table(s) {} already booked for an overlapping time slot."

    def __init__(self, table_ids, reservation_id=None, message=None):
        self.table_ids = list(table_ids)
        self.reservation_id = reservation_id
        template = message or self.default_message
        super().__init__(template.format(", ".join(str(t) for t in self.table_ids)))


class ReservationPersistenceError(SeatingError):
    """Writing a reservation failed; the transaction was rolled back."""
