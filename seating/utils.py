from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


def serialize_allocation_event(reservation, table_numbers, action):
    return {
        "action": action,
        "reservation": {
            "id": reservation.pk,
            "restaurant_id": reservation.restaurant_id,
            "party_size": reservation.party_size,
            "status": reservation.status,
            "date": reservation.reservation_date.isoformat(),
            "time": reservation.reservation_time.strftime("%H:%M"),
            "duration": reservation.duration,
            "tables": list(table_numbers),
        },
    }


def broadcast_allocation(reservation, table_numbers, action="allocated"):
    """
    Push an allocation event to the host-stand WebSocket group.

    Best-effort: a missing or failing channel layer is logged and never
    affects the reservation that was just committed.

    Args:
        reservation (Reservation): The reservation whose tables changed.
        table_numbers (list[int]): Table numbers now assigned to it.
        action (str): "allocated", "auto_allocated" or "overridden".
    """
    layer = get_channel_layer()
    if not layer:
        logger.warning("No channel layer configured; broadcast skipped.")
        return

    try:
        async_to_sync(layer.group_send)(
            settings.SEATING["HOST_STAND_GROUP"],
            {
                "type": "reservation_allocated",
                "data": serialize_allocation_event(reservation, table_numbers, action),
            },
        )
        logger.debug("Broadcasted reservation #%s (%s) to host stand.", reservation.pk, action)
    except Exception as exc:
        logger.warning("Host-stand broadcast failed for reservation #%s: %s", reservation.pk, exc)
