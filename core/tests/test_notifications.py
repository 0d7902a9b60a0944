from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

from rest_framework import status

from core.clock import FixedClock
from core.models import Notification
from core.services.notification_service import NotificationService

from .helpers import MarketplaceTestCase, api_client_for


class NotificationServiceTest(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.clock = FixedClock(datetime(2024, 1, 1, tzinfo=dt_timezone.utc))
        self.service = NotificationService(clock=self.clock)

    def test_notify_persists_with_clock_time(self):
        notification = self.service.notify(self.freelancer.id, 'system', 'Hello', 'Welcome aboard')
        self.assertEqual(notification.created_at, self.clock.now())
        self.assertFalse(notification.is_read)

    @mock.patch('core.services.notification_service.push_to_user')
    def test_push_waits_for_commit(self, push_to_user):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            notification = self.service.notify(self.freelancer.id, 'system', 'Hello', 'Welcome aboard')
            push_to_user.assert_not_called()

        self.assertEqual(len(callbacks), 1)
        user_id, payload = push_to_user.call_args.args
        self.assertEqual(user_id, self.freelancer.id)
        self.assertEqual(payload['type'], 'notification')
        self.assertEqual(payload['notification']['id'], notification.id)

    def test_list_is_newest_first_and_capped(self):
        for i in range(3):
            self.service.notify(self.freelancer.id, 'system', f'n{i}', 'body')
            self.clock.advance(timedelta(minutes=1))

        titles = [n.title for n in self.service.list_for_user(self.freelancer, limit=2)]
        self.assertEqual(titles, ['n2', 'n1'])
        self.assertEqual(len(self.service.list_for_user(self.freelancer, limit=1000)), 3)


class NotificationApiTest(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.notification = Notification.objects.create(
            user=self.freelancer, type='proposal', title='Proposal Accepted', message='Congrats',
        )

    def test_list_own_notifications(self):
        Notification.objects.create(user=self.client_user, type='system', title='x', message='y')
        response = api_client_for(self.freelancer).get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['id'] for n in response.data], [self.notification.id])

    def test_mark_read(self):
        response = api_client_for(self.freelancer).put(f'/api/notifications/{self.notification.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

    def test_mark_read_of_someone_else(self):
        response = api_client_for(self.client_user).put(f'/api/notifications/{self.notification.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.notification.refresh_from_db()
        self.assertFalse(self.notification.is_read)

    def test_mark_read_missing(self):
        response = api_client_for(self.freelancer).put('/api/notifications/987654/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Notification not found.'})

    def test_mark_all_read(self):
        Notification.objects.create(user=self.freelancer, type='system', title='x', message='y')
        response = api_client_for(self.freelancer).put('/api/notifications/read-all/')
        self.assertEqual(response.data, {'updated': 2})
        self.assertFalse(Notification.objects.filter(user=self.freelancer, is_read=False).exists())
