from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Message(models.Model):
    project = models.ForeignKey('core.Project', on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    receiver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_messages')
    content = models.TextField()
    attachments = models.JSONField(default=list, blank=True)
    # The only field that changes after creation
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['project', 'created_at'], name='message_project_created_idx'),
            models.Index(fields=['receiver', 'is_read'], name='message_receiver_read_idx'),
        ]

    def __str__(self):
        return f"Message {self.id} in project {self.project_id}"


class ConversationRollup(models.Model):
    """Per-user summary of one project conversation, kept current on send and read."""

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='conversation_rollups')
    project = models.ForeignKey('core.Project', on_delete=models.CASCADE, related_name='conversation_rollups')
    last_message = models.ForeignKey(Message, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    unread_count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-updated_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'project'], name='one_rollup_per_user_project'),
        ]

    def __str__(self):
        return f"Conversation {self.project_id} for {self.user_id} ({self.unread_count} unread)"
