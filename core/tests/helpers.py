from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import Project, Proposal, User

PASSWORD = 'Str0ng-Pass-123'

DRAFT_MILESTONE = {
    'title': 'Draft',
    'description': 'First draft of the landing page',
    'amount': '100.00',
    'due_date': '2025-01-01',
}


def make_user(username, role='freelancer', **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password=PASSWORD,
        role=role,
        **extra,
    )


def make_project(client, **overrides):
    data = {
        'title': 'Landing page',
        'description': 'Build a marketing landing page',
        'category': 'web-development',
        'skills': ['django', 'react'],
        'budget': Decimal('500.00'),
        'timeline': '2 weeks',
    }
    data.update(overrides)
    return Project.objects.create(client=client, **data)


def make_proposal(project, freelancer, milestones=None, **overrides):
    data = {
        'cover_letter': 'I have built many landing pages.',
        'proposed_budget': Decimal('450.00'),
        'proposed_timeline': '10 days',
        'milestones': [DRAFT_MILESTONE] if milestones is None else milestones,
    }
    data.update(overrides)
    return Proposal.objects.create(project=project, freelancer=freelancer, **data)


def api_client_for(user=None):
    client = APIClient()
    if user is not None:
        token = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.access_token}')
    return client


class MarketplaceTestCase(TestCase):
    """Client, freelancer and an open project, with a clean presence cache."""

    def setUp(self):
        cache.clear()
        self.client_user = make_user('client', role='client')
        self.freelancer = make_user('freelancer')
        self.other_freelancer = make_user('other_freelancer')
        self.project = make_project(self.client_user)
