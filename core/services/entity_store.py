from decimal import Decimal

from django.db import transaction

from ..exceptions import NotFound
from ..models import Milestone, Notification, Project, Proposal, Review, User


class EntityStore:
    """Keyed storage and filtered listing for one model."""

    model = None
    ordering = ('-created_at',)

    def __init__(self, model=None):
        if model is not None:
            self.model = model

    @property
    def label(self):
        return self.model._meta.verbose_name.capitalize()

    def queryset(self):
        return self.model.objects.all()

    def get(self, pk, for_update=False):
        qs = self.queryset()
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"{self.label} not found.")

    def list(self, ordering=None, limit=None, offset=0, **filters):
        qs = self.queryset().filter(**filters).order_by(*(ordering or self.ordering))
        if limit is not None:
            return list(qs[offset:offset + limit])
        return list(qs[offset:]) if offset else list(qs)

    def create(self, **payload):
        return self.model.objects.create(**payload)

    @transaction.atomic
    def update(self, pk, **changes):
        instance = self.get(pk, for_update=True)
        for field, value in changes.items():
            setattr(instance, field, value)
        instance.save()
        return instance

    def delete(self, pk):
        deleted, _ = self.model.objects.filter(pk=pk).delete()
        return deleted > 0


class ProjectStore(EntityStore):
    model = Project

    def queryset(self):
        return Project.objects.select_related('client', 'freelancer')

    def list(self, status=None, category=None, skills=None, budget_min=None, budget_max=None,
             client_id=None, freelancer_id=None, limit=20, offset=0, ordering=None):
        qs = self.queryset()
        if status:
            qs = qs.filter(status=status)
        if category:
            qs = qs.filter(category=category)
        if client_id:
            qs = qs.filter(client_id=client_id)
        if freelancer_id:
            qs = qs.filter(freelancer_id=freelancer_id)
        if budget_min is not None:
            qs = qs.filter(budget__gte=Decimal(str(budget_min)))
        if budget_max is not None:
            qs = qs.filter(budget__lte=Decimal(str(budget_max)))
        if isinstance(ordering, str):
            ordering = (ordering,)
        qs = qs.order_by(*(ordering or self.ordering), '-id')

        if skills:
            # JSON list intersection is not portable across backends
            wanted = set(skills)
            projects = [p for p in qs if wanted.intersection(p.skills or [])]
            return projects[offset:offset + limit] if limit is not None else projects[offset:]

        if limit is not None:
            return list(qs[offset:offset + limit])
        return list(qs[offset:])


class ProposalStore(EntityStore):
    model = Proposal

    def queryset(self):
        return Proposal.objects.select_related('project', 'freelancer')

    def for_project(self, project_id):
        return self.list(project_id=project_id)

    def for_freelancer(self, freelancer_id):
        return self.list(freelancer_id=freelancer_id)


class MilestoneStore(EntityStore):
    model = Milestone
    ordering = ('due_date', 'id')

    def queryset(self):
        return Milestone.objects.select_related('project')

    def for_project(self, project_id):
        return self.list(project_id=project_id)


class NotificationStore(EntityStore):
    model = Notification
    ordering = ('-created_at', '-id')

    def for_user(self, user_id, limit=20):
        return self.list(user_id=user_id, limit=limit)


class ReviewStore(EntityStore):
    model = Review

    def for_reviewee(self, user_id):
        return self.list(reviewee_id=user_id)


class UserStore(EntityStore):
    model = User
    ordering = ('-date_joined',)

    def search_freelancers(self, query='', skills=None, location=None, min_rating=None, limit=20, offset=0):
        qs = User.objects.filter(role='freelancer', is_active=True)
        if location:
            qs = qs.filter(location__icontains=location)
        if min_rating is not None:
            qs = qs.filter(rating__gte=Decimal(str(min_rating)))
        qs = qs.order_by('-rating', 'id')

        term = (query or '').strip().lower()
        wanted = set(skills or [])
        results = []
        for user in qs:
            user_skills = user.skills or []
            if wanted and not wanted.intersection(user_skills):
                continue
            if term and not self._matches(user, term, user_skills):
                continue
            results.append(user)
        return results[offset:offset + limit] if limit is not None else results[offset:]

    @staticmethod
    def _matches(user, term, user_skills):
        fields = (user.username, user.first_name, user.last_name, user.bio)
        if any(term in (value or '').lower() for value in fields):
            return True
        return any(term in str(skill).lower() for skill in user_skills)


projects = ProjectStore()
proposals = ProposalStore()
milestones = MilestoneStore()
notifications = NotificationStore()
reviews = ReviewStore()
users = UserStore()
