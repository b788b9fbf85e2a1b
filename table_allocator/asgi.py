# table_allocator/asgi.py

import os
import django
from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack

# -----------------------------------------------------------------------------
# Environment setup
# -----------------------------------------------------------------------------
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'table_allocator.settings')
django.setup()

# Import WebSocket routing once the app registry is ready
from seating import routing  # noqa: E402

# -----------------------------------------------------------------------------
# ASGI application configuration
# -----------------------------------------------------------------------------
application = ProtocolTypeRouter({
    # Handles traditional HTTP requests
    "http": get_asgi_application(),

    # Host-stand displays subscribe to allocation events here
    "websocket": AuthMiddlewareStack(
        URLRouter(
            routing.websocket_urlpatterns
        )
    ),
})
