"""
seating/routing.py

WebSocket route map for Django Channels.
"""

from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # Example connection: ws://host/ws/host_stand/
    re_path(r"^ws/host_stand/$", consumers.HostStandConsumer.as_asgi()),
]
