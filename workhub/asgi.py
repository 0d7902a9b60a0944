"""
ASGI entry point for WorkHub: HTTP through Django, live chat through Channels.

Run with ``daphne workhub.asgi:application``.
"""
import asyncio
import os
import sys

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "workhub.settings")

# Apps must be loaded before the consumers import any models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from workhub.websocket_routing import websocket_urlpatterns  # noqa: E402

if sys.platform == 'linux':
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

# Sockets authenticate with the JWT in the query string, so no session middleware
application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(
        URLRouter(websocket_urlpatterns)
    ),
})
