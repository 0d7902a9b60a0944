from rest_framework import serializers

from core.serializers import UserShortSerializer

from .models import ConversationRollup, Message


class MessageSerializer(serializers.ModelSerializer):
    sender = UserShortSerializer(read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'project', 'sender', 'receiver', 'content', 'attachments', 'is_read', 'created_at']
        read_only_fields = fields


class SendMessageSerializer(serializers.Serializer):
    receiver_id = serializers.IntegerField()
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)
    attachments = serializers.ListField(child=serializers.CharField(max_length=500), required=False, default=list)


class ConversationSerializer(serializers.ModelSerializer):
    project_id = serializers.IntegerField(read_only=True)
    project_title = serializers.CharField(source='project.title', read_only=True)
    last_message = MessageSerializer(read_only=True)

    class Meta:
        model = ConversationRollup
        fields = ['project_id', 'project_title', 'last_message', 'unread_count', 'updated_at']
