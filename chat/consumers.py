import json
import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from core.exceptions import Unauthorized, WorkflowError
from core.identity import authenticate
from core.realtime import registry, to_wire, user_group

from .serializers import MessageSerializer
from .services import messaging_service

logger = logging.getLogger(__name__)

AUTH_FAILED_CLOSE_CODE = 4001


class ChatConsumer(AsyncWebsocketConsumer):
    """Live connection for one user.

    Each connection joins the user's group so pushes reach every open tab or
    device. Incoming ``chat_message`` frames are persisted through the
    messaging service.
    """

    user = None

    async def connect(self):
        query_string = parse_qs(self.scope['query_string'].decode())
        token = query_string.get('token', [None])[0]

        try:
            self.user = await database_sync_to_async(authenticate)(token)
        except Unauthorized as e:
            logger.warning(f"Rejected chat connection: {e.detail}")
            await self.accept()
            await self.close(code=AUTH_FAILED_CLOSE_CODE)
            return

        self.group_name = user_group(self.user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await sync_to_async(registry.register)(self.user.id)
        await self.accept()
        logger.info(f"User {self.user.id} connected to chat")

    async def disconnect(self, close_code):
        if self.user is None:
            return
        await self.channel_layer.group_discard(self.group_name, self.channel_name)
        await sync_to_async(registry.unregister)(self.user.id)
        logger.info(f"User {self.user.id} disconnected from chat with code: {close_code}")

    async def receive(self, text_data=None, bytes_data=None):
        if self.user is None:
            return
        try:
            data = json.loads(text_data or '')
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON payload.")
            return
        if not isinstance(data, dict):
            await self.send_error("Invalid JSON payload.")
            return

        if data.get('type') != 'chat_message':
            await self.send_error(f"Unsupported message type: {data.get('type')}")
            return

        sender_id = data.get('senderId')
        if sender_id is not None and str(sender_id) != str(self.user.id):
            await self.send_error("senderId does not match the authenticated user.")
            return

        try:
            message = await self.send_message(
                data.get('projectId'),
                data.get('receiverId'),
                data.get('content'),
                data.get('attachments') or [],
            )
        except WorkflowError as e:
            await self.send_error(str(e.detail))
            return

        await self.send(text_data=json.dumps({"type": "message_sent", "message": message}))

    @database_sync_to_async
    def send_message(self, project_id, receiver_id, content, attachments):
        message = messaging_service.send(project_id, self.user, receiver_id, content, attachments)
        return to_wire(MessageSerializer(message).data)

    async def send_error(self, error):
        await self.send(text_data=json.dumps({"type": "error", "error": error}))

    # Receive a push addressed to this user's group
    async def realtime_push(self, event):
        await self.send(text_data=json.dumps(event['payload']))
