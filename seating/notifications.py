import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends guest-facing e-mail through Django's configured EMAIL_BACKEND."""

    def __init__(self, from_email=None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send_email(self, address, subject, body):
        if not address:
            raise ValueError("An e-mail address is required.")
        send_mail(subject, body, self.from_email, [address], fail_silently=False)
        logger.info("Sent '%s' to %s", subject, address)


def build_allocation_email(reservation, description):
    """Return (subject, body) for a table-allocation confirmation."""
    restaurant_name = settings.SEATING.get("RESTAURANT_NAME") or reservation.restaurant.name
    contact = reservation.contact
    name = contact.full_name if contact else ""

    subject = f"Your table at {restaurant_name} is confirmed"
    body = (
        f"Dear {name or 'guest'},\n\n"
        f"Your table has been allocated for your upcoming reservation at {restaurant_name}.\n\n"
        f"Date: {reservation.reservation_date:%A, %B %d, %Y}\n"
        f"Time: {reservation.reservation_time:%H:%M}\n"
        f"Party size: {reservation.party_size}\n"
        f"Table(s): {description}\n\n"
        f"We look forward to seeing you.\n"
    )
    return subject, body
