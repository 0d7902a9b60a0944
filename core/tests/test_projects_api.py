from decimal import Decimal

from rest_framework import status
from rest_framework.test import APIClient

from core.models import Project, User

from .helpers import MarketplaceTestCase, api_client_for, make_project, make_user


class ProjectCreateTest(MarketplaceTestCase):
    payload = {
        'title': 'Mobile app',
        'description': 'Build an iOS app',
        'category': 'mobile',
        'skills': ['swift'],
        'budget': '1200.50',
        'timeline': '1 month',
    }

    def test_client_creates_open_project(self):
        response = api_client_for(self.client_user).post('/api/projects/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'open')
        self.assertEqual(response.data['budget'], '1200.50')
        self.assertEqual(response.data['client']['id'], self.client_user.id)
        self.assertIsNone(response.data['freelancer'])

    def test_creating_a_project_adds_budget_to_total_spent(self):
        api_client_for(self.client_user).post('/api/projects/', self.payload, format='json')
        self.client_user.refresh_from_db()
        self.assertEqual(self.client_user.total_spent, Decimal('1200.50'))

    def test_freelancer_cannot_create_project(self):
        response = api_client_for(self.freelancer).post('/api/projects/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Only clients can create projects.'})

    def test_status_cannot_be_set_on_create(self):
        payload = dict(self.payload, status='in_progress')
        response = api_client_for(self.client_user).post('/api/projects/', payload, format='json')
        self.assertEqual(response.data['status'], 'open')


class ProjectListTest(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.cheap = make_project(self.client_user, title='Logo', category='design', skills=['figma'], budget=Decimal('50'))
        self.pricey = make_project(self.client_user, title='Platform', category='web-development', skills=['go'], budget=Decimal('5000'))

    def _ids(self, query=''):
        response = APIClient().get(f'/api/projects/{query}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return [item['id'] for item in response.data]

    def test_newest_first(self):
        self.assertEqual(self._ids(), [self.pricey.id, self.cheap.id, self.project.id])

    def test_filter_by_category(self):
        self.assertEqual(self._ids('?category=design'), [self.cheap.id])

    def test_filter_by_any_skill(self):
        self.assertEqual(self._ids('?skills=figma,react'), [self.cheap.id, self.project.id])

    def test_filter_by_budget_range(self):
        self.assertEqual(self._ids('?budget_min=100&budget_max=1000'), [self.project.id])

    def test_pagination(self):
        self.assertEqual(self._ids('?limit=1&offset=1'), [self.cheap.id])

    def test_filter_by_status(self):
        Project.objects.filter(pk=self.cheap.pk).update(status='cancelled')
        self.assertEqual(self._ids('?status=cancelled'), [self.cheap.id])

    def test_malformed_filters_are_bad_requests(self):
        cases = {
            '?budget_min=abc': 'budget_min: Must be a number.',
            '?budget_max=NaN': 'budget_max: Must be a number.',
            '?limit=-5': 'limit: Must be at least 1.',
            '?offset=-1': 'offset: Must be at least 0.',
            '?client_id=me': 'client_id: Must be an integer.',
        }
        for query, error in cases.items():
            with self.subTest(query=query):
                response = APIClient().get(f'/api/projects/{query}')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['error'], error)

    def test_limit_is_capped(self):
        self.assertEqual(len(self._ids('?limit=1000')), 3)



class ProjectEditDeleteTest(MarketplaceTestCase):
    def test_owner_can_patch(self):
        response = api_client_for(self.client_user).patch(
            f'/api/projects/{self.project.id}/', {'title': 'New title'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'New title')

    def test_other_user_cannot_patch(self):
        other_client = make_user('other_client', role='client')
        response = api_client_for(other_client).patch(
            f'/api/projects/{self.project.id}/', {'title': 'Hijacked'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_owner_can_delete(self):
        response = api_client_for(self.client_user).delete(f'/api/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Project.objects.filter(pk=self.project.pk).exists())

    def test_admin_can_delete(self):
        admin = make_user('moderator', role='admin')
        response = api_client_for(admin).delete(f'/api/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_freelancer_cannot_delete(self):
        response = api_client_for(self.freelancer).delete(f'/api/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Project.objects.filter(pk=self.project.pk).exists())

    def test_anonymous_cannot_delete(self):
        response = APIClient().delete(f'/api/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertTrue(Project.objects.filter(pk=self.project.pk).exists())

    def test_other_client_cannot_delete(self):
        other_client = make_user('other_client', role='client')
        response = api_client_for(other_client).delete(f'/api/projects/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Project.objects.filter(pk=self.project.pk).exists())


    def test_missing_project(self):
        response = APIClient().get('/api/projects/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Project not found.'})

    def test_users_are_not_deleted_with_projects(self):
        api_client_for(self.client_user).delete(f'/api/projects/{self.project.id}/')
        self.assertTrue(User.objects.filter(pk=self.client_user.pk).exists())
