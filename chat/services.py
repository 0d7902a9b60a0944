import logging

from django.db import transaction
from django.db.models import F

from core.clock import default_clock
from core.exceptions import Forbidden, InvalidState
from core.realtime import push_to_user, registry
from core.services.entity_store import projects
from core.services.notification_service import NotificationService

from .models import ConversationRollup, Message
from .serializers import MessageSerializer

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


class MessagingService:
    """Project chat between a client and the assigned freelancer.

    Every send persists the message and a ``message`` notification for the
    receiver in one transaction. A live push follows only when the receiver
    has an open connection; it is best-effort and never retried.
    """

    def __init__(self, clock=None, notifier=None, connections=None):
        self.clock = clock or default_clock
        self.notifier = notifier or NotificationService(clock=self.clock)
        self.connections = connections or registry

    def send(self, project_id, sender, receiver_id, content, attachments=()):
        if content is not None and not isinstance(content, str):
            raise InvalidState("Message content must be text.")
        if not content or not content.strip():
            raise InvalidState("Message content cannot be empty.")
        if attachments and (
            not isinstance(attachments, (list, tuple)) or not all(isinstance(item, str) for item in attachments)
        ):
            raise InvalidState("Attachments must be a list of URLs.")
        try:
            receiver_id = int(receiver_id)
        except (TypeError, ValueError):
            raise InvalidState("A valid receiver is required.")

        with transaction.atomic():
            project = projects.get(project_id)
            if not project.is_participant(sender):
                raise Forbidden("You are not a participant of this project.")
            if receiver_id == sender.id or project.other_participant_id(sender) != receiver_id:
                raise Forbidden("You can only message the other participant of this project.")

            now = self.clock.now()
            message = Message.objects.create(
                project=project,
                sender=sender,
                receiver_id=receiver_id,
                content=content,
                attachments=list(attachments or []),
                created_at=now,
            )
            self._touch_rollup(sender.id, project.id, message, now)
            self._touch_rollup(receiver_id, project.id, message, now, unread=1)

            preview = content if len(content) <= PREVIEW_LENGTH else content[:PREVIEW_LENGTH - 3] + '...'
            self.notifier.notify(
                receiver_id,
                'message',
                'New Message',
                f"{sender.username}: {preview}",
                related_id=project.id,
            )

        logger.info(f"Message {message.id} sent on project {project.id} from user {sender.id} to user {receiver_id}")

        if self.connections.is_online(receiver_id):
            push_to_user(
                receiver_id,
                {"type": "new_message", "message": MessageSerializer(message).data},
                connections=self.connections,
            )
        return message

    @staticmethod
    def _touch_rollup(user_id, project_id, message, now, unread=0):
        ConversationRollup.objects.get_or_create(user_id=user_id, project_id=project_id)
        ConversationRollup.objects.filter(user_id=user_id, project_id=project_id).update(
            last_message=message,
            updated_at=now,
            unread_count=F('unread_count') + unread,
        )

    def messages_for_project(self, project_id, user):
        """Return the conversation oldest first and mark what was addressed to ``user`` as read."""
        project = projects.get(project_id)
        if not project.is_participant(user):
            raise Forbidden("You are not a participant of this project.")

        history = list(
            Message.objects.filter(project=project).select_related('sender').order_by('created_at', 'id')
        )
        with transaction.atomic():
            flipped = Message.objects.filter(project=project, receiver=user, is_read=False).update(is_read=True)
            ConversationRollup.objects.filter(user=user, project=project).update(unread_count=0)
        if flipped:
            logger.info(f"Marked {flipped} messages read on project {project.id} for user {user.id}")
        return history

    def conversations(self, user):
        return list(
            ConversationRollup.objects.filter(user=user)
            .select_related('project', 'last_message__sender')
            .order_by('-updated_at', '-id')
        )


messaging_service = MessagingService()
