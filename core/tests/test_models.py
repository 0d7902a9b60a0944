from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.models import Milestone, Project, Review

from .helpers import MarketplaceTestCase, make_proposal


class ProjectAssignmentInvariantTest(MarketplaceTestCase):
    def test_new_project_is_open_and_unassigned(self):
        self.assertEqual(self.project.status, 'open')
        self.assertIsNone(self.project.freelancer_id)
        self.assertIsNone(self.project.accepted_proposal_id)

    def test_freelancer_without_accepted_proposal_is_rejected(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Project.objects.filter(pk=self.project.pk).update(freelancer=self.freelancer)

    def test_accepted_proposal_without_freelancer_is_rejected(self):
        proposal = make_proposal(self.project, self.freelancer)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Project.objects.filter(pk=self.project.pk).update(accepted_proposal=proposal)

    def test_both_set_is_allowed(self):
        proposal = make_proposal(self.project, self.freelancer)
        Project.objects.filter(pk=self.project.pk).update(freelancer=self.freelancer, accepted_proposal=proposal)
        self.project.refresh_from_db()
        self.assertEqual(self.project.freelancer, self.freelancer)

    def test_other_participant(self):
        self.assertIsNone(self.project.other_participant_id(self.client_user))
        self.assertTrue(self.project.is_participant(self.client_user))
        self.assertFalse(self.project.is_participant(self.freelancer))


class MilestonePaymentInvariantTest(MarketplaceTestCase):
    def test_paid_without_approval_is_rejected(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Milestone.objects.create(
                    project=self.project, title='Draft', amount=Decimal('100.00'), paid_at=timezone.now(),
                )

    def test_paid_after_approval_is_allowed(self):
        now = timezone.now()
        milestone = Milestone.objects.create(
            project=self.project, title='Draft', amount=Decimal('100.00'),
            status='paid', approved_at=now, paid_at=now,
        )
        self.assertTrue(milestone.is_paid)


class ReviewRatingTest(MarketplaceTestCase):
    def test_rating_out_of_range_is_rejected(self):
        for rating in (0, 6):
            with self.subTest(rating=rating):
                with self.assertRaises(IntegrityError):
                    with transaction.atomic():
                        Review.objects.create(
                            project=self.project, reviewer=self.client_user,
                            reviewee=self.freelancer, rating=rating,
                        )

    def test_rating_bounds_are_inclusive(self):
        Review.objects.create(project=self.project, reviewer=self.client_user, reviewee=self.freelancer, rating=1)
        Review.objects.create(project=self.project, reviewer=self.freelancer, reviewee=self.client_user, rating=5)
        self.assertEqual(Review.objects.count(), 2)
