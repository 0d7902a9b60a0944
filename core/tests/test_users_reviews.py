from decimal import Decimal

from rest_framework import status
from rest_framework.test import APIClient

from core.models import Review, User
from core.services.proposal_service import ProposalService

from .helpers import MarketplaceTestCase, api_client_for, make_proposal, make_user


class ReviewTest(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        proposal = make_proposal(self.project, self.freelancer)
        ProposalService().accept(proposal.id, self.client_user)

    def _review(self, reviewer, reviewee, rating, project=None):
        return api_client_for(reviewer).post('/api/reviews/', {
            'project': (project or self.project).id,
            'reviewee': reviewee.id,
            'rating': rating,
            'comment': 'Great work',
        }, format='json')

    def test_client_reviews_freelancer_and_rating_updates(self):
        response = self._review(self.client_user, self.freelancer, 4)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.freelancer.refresh_from_db()
        self.assertEqual(self.freelancer.rating, Decimal('4.00'))
        self.assertEqual(self.freelancer.review_count, 1)

    def test_rating_is_the_average_of_received_reviews(self):
        second_project = self.project.__class__.objects.create(
            client=self.client_user, title='Second', description='x', category='web',
            budget=Decimal('10'), timeline='1 day',
        )
        ProposalService().accept(make_proposal(second_project, self.freelancer).id, self.client_user)

        self._review(self.client_user, self.freelancer, 5)
        self._review(self.client_user, self.freelancer, 4, project=second_project)

        self.freelancer.refresh_from_db()
        self.assertEqual(self.freelancer.rating, Decimal('4.50'))
        self.assertEqual(self.freelancer.review_count, 2)

    def test_rating_outside_bounds(self):
        for rating in (0, 6):
            with self.subTest(rating=rating):
                response = self._review(self.client_user, self.freelancer, rating)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Review.objects.exists())

    def test_one_review_per_project(self):
        self._review(self.client_user, self.freelancer, 5)
        response = self._review(self.client_user, self.freelancer, 3)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Review.objects.count(), 1)

    def test_outsider_cannot_review(self):
        response = self._review(self.other_freelancer, self.client_user, 1)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_review_yourself(self):
        response = self._review(self.client_user, self.client_user, 5)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_public_profile_lists_received_reviews(self):
        self._review(self.client_user, self.freelancer, 5)
        response = APIClient().get(f'/api/users/{self.freelancer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['reviews']), 1)
        self.assertNotIn('password', response.data)


class ProfileTest(MarketplaceTestCase):
    def test_update_own_profile(self):
        response = api_client_for(self.freelancer).put('/api/users/profile/', {
            'bio': 'Python developer', 'skills': ['python', 'django'], 'hourly_rate': '45.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.freelancer.refresh_from_db()
        self.assertEqual(self.freelancer.skills, ['python', 'django'])

    def test_role_cannot_be_changed(self):
        api_client_for(self.freelancer).put('/api/users/profile/', {'role': 'client'}, format='json')
        self.freelancer.refresh_from_db()
        self.assertEqual(self.freelancer.role, 'freelancer')


class FreelancerSearchTest(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        User.objects.filter(pk=self.freelancer.pk).update(
            skills=['Django', 'PostgreSQL'], rating=Decimal('4.80'), location='Pune',
        )
        User.objects.filter(pk=self.other_freelancer.pk).update(
            skills=['Figma'], rating=Decimal('3.10'), bio='Brand designer', location='Delhi',
        )

    def _usernames(self, query=''):
        response = APIClient().get(f'/api/search/freelancers/{query}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return [u['username'] for u in response.data]

    def test_sorted_by_rating_and_excludes_clients(self):
        self.assertEqual(self._usernames(), ['freelancer', 'other_freelancer'])

    def test_substring_matches_skills_and_bio(self):
        self.assertEqual(self._usernames('?q=postgres'), ['freelancer'])
        self.assertEqual(self._usernames('?q=DESIGN'), ['other_freelancer'])

    def test_min_rating(self):
        self.assertEqual(self._usernames('?min_rating=4'), ['freelancer'])

    def test_malformed_min_rating_is_a_bad_request(self):
        response = APIClient().get('/api/search/freelancers/?min_rating=x')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'min_rating: Must be a number.')


    def test_location(self):
        self.assertEqual(self._usernames('?location=delhi'), ['other_freelancer'])

    def test_inactive_users_are_hidden(self):
        make_user('ghost', is_active=False)
        self.assertNotIn('ghost', self._usernames())
