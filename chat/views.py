from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import ConversationSerializer, MessageSerializer, SendMessageSerializer
from .services import messaging_service


class ProjectMessagesView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        history = messaging_service.messages_for_project(project_id, request.user)
        return Response(MessageSerializer(history, many=True).data)

    def post(self, request, project_id):
        """Send a message without a live connection."""
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        message = messaging_service.send(
            project_id,
            request.user,
            data['receiver_id'],
            data['content'],
            data.get('attachments'),
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
def conversations(request):
    rollups = messaging_service.conversations(request.user)
    return Response(ConversationSerializer(rollups, many=True).data)
