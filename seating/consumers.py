import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


# ==============================================================================
# Base Helper
# ==============================================================================
class SafeConsumer(AsyncWebsocketConsumer):
    """Base consumer with safe JSON sending method."""

    async def safe_send(self, data: dict):
        try:
            await self.send(text_data=json.dumps(data))
        except Exception as exc:
            logger.error(f"{self.__class__.__name__} failed to send data: {exc}")


# ==============================================================================
# Host Stand Consumer
# ==============================================================================
class HostStandConsumer(SafeConsumer):
    """
    Live feed of table allocations for host-stand screens.

    Staff only. On connect the client receives today's seated/confirmed
    reservations with their tables, then one `reservation_allocated` event
    per allocation, auto-allocation or override.
    """

    async def connect(self):
        user = self.scope.get("user")
        if not user or not user.is_authenticated or not user.is_staff:
            await self.close(code=4001)
            logger.warning("Host stand connect refused (unauthorized user)")
            return

        self.group_name = settings.SEATING["HOST_STAND_GROUP"]
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        snapshot = await self._todays_reservations()
        await self.safe_send({"type": "snapshot", "reservations": snapshot})

    async def disconnect(self, code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Read-only feed
        await self.safe_send({"error": "This channel does not accept messages"})

    async def reservation_allocated(self, event):
        await self.safe_send({"type": "reservation_allocated", **event["data"]})

    @database_sync_to_async
    def _todays_reservations(self):
        from .models import Reservation
        from .utils import serialize_allocation_event

        today = timezone.localdate()
        qs = (
            Reservation.objects.holding_tables()
            .filter(reservation_date=today)
            .prefetch_related("tables")
            .order_by("reservation_time", "id")
        )
        return [
            serialize_allocation_event(r, [t.table_number for t in r.tables.all()], "snapshot")["reservation"]
            for r in qs
        ]
