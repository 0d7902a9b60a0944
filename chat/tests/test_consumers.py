"""
Live connection tests for the chat consumer.

Covers token authentication on connect, presence registration, chat_message
frames and fan-out to every connection of the receiver.
"""
import json

import pytest
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.core.cache import cache
from rest_framework_simplejwt.tokens import AccessToken

from chat.models import Message
from chat.routing import websocket_urlpatterns
from core.models import Notification
from core.realtime import registry
from core.services.proposal_service import ProposalService
from core.tests.helpers import make_project, make_proposal, make_user

application = URLRouter(websocket_urlpatterns)


@pytest.fixture(autouse=True)
def clean_presence():
    cache.clear()
    yield
    cache.clear()
    async_to_sync(get_channel_layer().flush)()


@pytest.fixture
def parties(transactional_db):
    client = make_user('ws_client', role='client')
    freelancer = make_user('ws_freelancer')
    outsider = make_user('ws_outsider')
    project = make_project(client)
    ProposalService().accept(make_proposal(project, freelancer).id, client)
    return {'client': client, 'freelancer': freelancer, 'outsider': outsider, 'project': project}


def token_for(user):
    return str(AccessToken.for_user(user))


async def open_connection(user=None, token=None):
    token = token if token is not None else token_for(user)
    communicator = WebsocketCommunicator(application, f"/ws/chat/?token={token}")
    connected, _ = await communicator.connect()
    return communicator, connected


async def receive_frames(communicator, count):
    return [json.loads(await communicator.receive_from(timeout=2)) for _ in range(count)]


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestChatConnection:
    async def test_missing_token_closes_with_4001(self):
        communicator = WebsocketCommunicator(application, "/ws/chat/")
        connected, _ = await communicator.connect()
        assert connected
        output = await communicator.receive_output(timeout=2)
        assert output['type'] == 'websocket.close'
        assert output['code'] == 4001

    async def test_invalid_token_closes_with_4001(self):
        communicator, _ = await open_connection(token='garbage')
        output = await communicator.receive_output(timeout=2)
        assert output['code'] == 4001

    async def test_presence_follows_connections(self, parties):
        client_id = parties['client'].id
        first, connected = await open_connection(parties['client'])
        assert connected
        second, _ = await open_connection(parties['client'])
        assert registry.connection_count(client_id) == 2

        await first.disconnect()
        assert registry.is_online(client_id)
        await second.disconnect()
        assert not registry.is_online(client_id)


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestChatMessages:
    async def test_message_reaches_every_receiver_connection(self, parties):
        sender, _ = await open_connection(parties['freelancer'])
        tab_one, _ = await open_connection(parties['client'])
        tab_two, _ = await open_connection(parties['client'])

        await sender.send_json_to({
            'type': 'chat_message',
            'projectId': parties['project'].id,
            'receiverId': parties['client'].id,
            'senderId': parties['freelancer'].id,
            'content': 'Draft is ready',
        })

        ack = json.loads(await sender.receive_from(timeout=2))
        assert ack['type'] == 'message_sent'
        assert ack['message']['content'] == 'Draft is ready'

        for tab in (tab_one, tab_two):
            frames = await receive_frames(tab, 2)
            by_type = {frame['type']: frame for frame in frames}
            assert set(by_type) == {'notification', 'new_message'}
            assert by_type['new_message']['message']['id'] == ack['message']['id']
            assert by_type['notification']['notification']['type'] == 'message'

        assert await database_sync_to_async(Message.objects.count)() == 1
        notifications = database_sync_to_async(
            lambda: Notification.objects.filter(user=parties['client'], type='message').count()
        )
        assert await notifications() == 1

        for communicator in (sender, tab_one, tab_two):
            await communicator.disconnect()

    async def test_offline_receiver_still_gets_notification(self, parties):
        sender, _ = await open_connection(parties['freelancer'])
        await sender.send_json_to({
            'type': 'chat_message',
            'projectId': parties['project'].id,
            'receiverId': parties['client'].id,
            'content': 'Anyone there?',
        })
        ack = json.loads(await sender.receive_from(timeout=2))
        assert ack['type'] == 'message_sent'
        assert ack['message']['is_read'] is False

        notifications = database_sync_to_async(
            lambda: Notification.objects.filter(user=parties['client'], type='message').count()
        )
        assert await notifications() == 1
        await sender.disconnect()

    async def test_spoofed_sender_is_rejected(self, parties):
        sender, _ = await open_connection(parties['freelancer'])
        await sender.send_json_to({
            'type': 'chat_message',
            'projectId': parties['project'].id,
            'receiverId': parties['client'].id,
            'senderId': parties['client'].id,
            'content': 'I am the client',
        })
        reply = json.loads(await sender.receive_from(timeout=2))
        assert reply == {'type': 'error', 'error': 'senderId does not match the authenticated user.'}
        assert await database_sync_to_async(Message.objects.count)() == 0
        await sender.disconnect()

    async def test_outsider_gets_error_frame(self, parties):
        outsider, _ = await open_connection(parties['outsider'])
        await outsider.send_json_to({
            'type': 'chat_message',
            'projectId': parties['project'].id,
            'receiverId': parties['client'].id,
            'content': 'hello',
        })
        reply = json.loads(await outsider.receive_from(timeout=2))
        assert reply == {'type': 'error', 'error': 'You are not a participant of this project.'}
        await outsider.disconnect()

    async def test_malformed_frames(self, parties):
        communicator, _ = await open_connection(parties['freelancer'])

        await communicator.send_to(text_data='{not json')
        reply = json.loads(await communicator.receive_from(timeout=2))
        assert reply['type'] == 'error'

        await communicator.send_json_to({'type': 'typing'})
        reply = json.loads(await communicator.receive_from(timeout=2))
        assert reply == {'type': 'error', 'error': 'Unsupported message type: typing'}

        await communicator.disconnect()

    async def test_non_text_content_gets_error_frame(self, parties):
        communicator, _ = await open_connection(parties['freelancer'])
        for content in (12345, ['hi'], {'text': 'hi'}):
            await communicator.send_json_to({
                'type': 'chat_message',
                'projectId': parties['project'].id,
                'receiverId': parties['client'].id,
                'content': content,
            })
            reply = json.loads(await communicator.receive_from(timeout=2))
            assert reply == {'type': 'error', 'error': 'Message content must be text.'}

        await communicator.send_json_to({
            'type': 'chat_message',
            'projectId': parties['project'].id,
            'receiverId': parties['client'].id,
            'content': 'still connected',
            'attachments': 'https://example.com/a.png',
        })
        reply = json.loads(await communicator.receive_from(timeout=2))
        assert reply == {'type': 'error', 'error': 'Attachments must be a list of URLs.'}

        assert await database_sync_to_async(Message.objects.count)() == 0
        await communicator.disconnect()
