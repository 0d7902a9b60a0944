"""Live push to connected users.

Every live connection of a user joins the channel-layer group ``user_<id>``,
so a push reaches all of that user's devices on any server process. The
registry keeps a per-user connection count in the shared cache so senders
can tell whether anybody is listening before pushing.
"""
import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.cache import cache
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)

PUSH_EVENT = 'realtime.push'


def user_group(user_id):
    return f"user_{user_id}"


def to_wire(data):
    """Reduce serializer output to plain JSON types the channel layer can carry."""
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


class ConnectionRegistry:
    key_prefix = 'presence:user'

    def __init__(self, backend=None, ttl=None):
        self.cache = backend or cache
        self.ttl = ttl or settings.PRESENCE_TTL

    def _key(self, user_id):
        return f"{self.key_prefix}:{user_id}"

    def register(self, user_id):
        key = self._key(user_id)
        self.cache.add(key, 0, timeout=self.ttl)
        try:
            return self.cache.incr(key)
        except ValueError:
            # Expired between add and incr
            self.cache.set(key, 1, timeout=self.ttl)
            return 1

    def unregister(self, user_id):
        key = self._key(user_id)
        try:
            remaining = self.cache.decr(key)
        except ValueError:
            return 0
        if remaining <= 0:
            self.cache.delete(key)
            return 0
        return remaining

    def connection_count(self, user_id):
        return self.cache.get(self._key(user_id), 0)

    def is_online(self, user_id):
        return self.connection_count(user_id) > 0


registry = ConnectionRegistry()


def push_to_user(user_id, payload, connections=None):
    """Best-effort, at-most-once push to every live connection of a user.

    Returns True when a push was handed to the channel layer. Offline users
    are skipped, and a failed push is logged, never raised or retried.
    """
    connections = connections or registry
    if not connections.is_online(user_id):
        return False

    try:
        channel_layer = get_channel_layer()
        async_to_sync(channel_layer.group_send)(
            user_group(user_id),
            {"type": PUSH_EVENT, "payload": to_wire(payload)},
        )
    except Exception as e:
        logger.warning(f"Live push to user {user_id} failed: {e}")
        return False
    return True
