from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class User(AbstractUser):
    ROLE_CHOICES = [
        ('freelancer', 'Freelancer'),
        ('client', 'Client'),
        ('admin', 'Admin'),
    ]

    # Fixed at registration; no API path writes it afterwards
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='freelancer', db_index=True)
    bio = models.TextField(blank=True)
    location = models.CharField(max_length=255, blank=True)
    avatar = models.URLField(max_length=500, blank=True, null=True)
    skills = models.JSONField(default=list, blank=True)
    portfolio_links = models.JSONField(default=list, blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    total_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    rating = models.DecimalField(
        max_digits=3, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )
    review_count = models.PositiveIntegerField(default=0)

    is_email_verified = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.id}-{self.username}"

    @property
    def is_client(self):
        return self.role == 'client'

    @property
    def is_freelancer(self):
        return self.role == 'freelancer'


class Project(models.Model):
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    BUDGET_TYPE_CHOICES = [
        ('fixed', 'Fixed'),
        ('hourly', 'Hourly'),
    ]

    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=100, db_index=True)
    skills = models.JSONField(default=list, blank=True)
    budget = models.DecimalField(max_digits=10, decimal_places=2)
    budget_type = models.CharField(max_length=10, choices=BUDGET_TYPE_CHOICES, default='fixed')
    timeline = models.CharField(max_length=100)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open', db_index=True)
    attachments = models.JSONField(default=list, blank=True)

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='client_projects',
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='freelancer_projects',
    )
    accepted_proposal = models.OneToOneField(
        'Proposal',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(freelancer__isnull=True, accepted_proposal__isnull=True)
                    | Q(freelancer__isnull=False, accepted_proposal__isnull=False)
                ),
                name='project_assignment_consistent',
            ),
        ]

    def __str__(self):
        return self.title

    def is_participant(self, user):
        return user.id in (self.client_id, self.freelancer_id)

    def other_participant_id(self, user):
        """Return the id of the participant on the other side of the conversation."""
        if user.id == self.client_id:
            return self.freelancer_id
        if user.id == self.freelancer_id:
            return self.client_id
        return None


class Proposal(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='proposals')
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='proposals',
    )
    cover_letter = models.TextField()
    proposed_budget = models.DecimalField(max_digits=10, decimal_places=2)
    proposed_timeline = models.CharField(max_length=100)
    # [{"title", "description", "amount", "due_date"}], materialized on acceptance
    milestones = models.JSONField(default=list, blank=True)
    portfolio_samples = models.JSONField(default=list, blank=True)
    questions = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['project', 'freelancer'], name='one_proposal_per_freelancer'),
        ]

    def __str__(self):
        return f"Proposal {self.id} by {self.freelancer_id} on {self.project_id} ({self.status})"

    @property
    def is_terminal(self):
        return self.status != 'pending'


class Milestone(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_review', 'In Review'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('paid', 'Paid'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='milestones')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    deliverables = models.JSONField(default=list, blank=True)
    feedback = models.TextField(blank=True, null=True)

    approved_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    # Gateway order id used to correlate payment callbacks
    payment_intent_id = models.CharField(max_length=255, blank=True, null=True, db_index=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['due_date', 'id']
        constraints = [
            models.CheckConstraint(
                condition=Q(paid_at__isnull=True) | Q(approved_at__isnull=False),
                name='milestone_paid_implies_approved',
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_paid(self):
        return self.paid_at is not None


class Notification(models.Model):
    TYPE_CHOICES = [
        ('message', 'Message'),
        ('proposal', 'Proposal'),
        ('milestone', 'Milestone'),
        ('payment', 'Payment'),
        ('system', 'System'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    # Loosely typed pointer at whatever raised the notification (usually a project)
    related_id = models.PositiveBigIntegerField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.type} notification for {self.user_id}: {self.title}"


class Review(models.Model):
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='reviews')
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews_given',
    )
    reviewee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews_received',
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(rating__gte=1) & Q(rating__lte=5), name='review_rating_range'),
            models.UniqueConstraint(fields=['project', 'reviewer'], name='one_review_per_project_reviewer'),
        ]

    def __str__(self):
        return f"{self.reviewer_id} rated {self.reviewee_id} {self.rating}/5"
