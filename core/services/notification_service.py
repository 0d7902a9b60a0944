import logging
from functools import partial

from django.db import transaction

from ..clock import default_clock
from ..exceptions import Forbidden
from ..models import Notification
from ..realtime import push_to_user
from ..serializers import NotificationSerializer
from .entity_store import notifications

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS_PAGE = 100


class NotificationService:
    """Persist notifications and push them to the recipient when they are online."""

    def __init__(self, clock=None, store=None):
        self.clock = clock or default_clock
        self.store = store or notifications

    def notify(self, user_id, type, title, message, related_id=None):
        notification = self.store.create(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            created_at=self.clock.now(),
        )
        payload = {
            "type": "notification",
            "notification": NotificationSerializer(notification).data,
        }
        # Nothing goes out for a notification whose transaction rolls back
        transaction.on_commit(partial(push_to_user, user_id, payload))
        return notification

    def list_for_user(self, user, limit=20):
        limit = max(1, min(int(limit), MAX_NOTIFICATIONS_PAGE))
        return self.store.for_user(user.id, limit=limit)

    def mark_read(self, notification_id, user):
        notification = self.store.get(notification_id)
        if notification.user_id != user.id:
            raise Forbidden("You can only update your own notifications.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
        return notification

    def mark_all_read(self, user):
        updated = Notification.objects.filter(user=user, is_read=False).update(is_read=True)
        logger.info(f"Marked {updated} notifications read for user {user.id}")
        return updated


notification_service = NotificationService()
