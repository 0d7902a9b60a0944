import logging

from django.db import transaction
from django.db.models import F

from ..clock import default_clock
from ..exceptions import Forbidden
from ..identity import authorize
from ..models import Project, User
from .entity_store import projects

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'category', 'skills', 'budget', 'budget_type', 'timeline', 'attachments')


class ProjectService:
    def __init__(self, clock=None):
        self.clock = clock or default_clock

    def create(self, client, data):
        authorize(client, 'client', message="Only clients can create projects.")
        now = self.clock.now()
        with transaction.atomic():
            project = projects.create(
                client=client,
                created_at=now,
                updated_at=now,
                **{field: data[field] for field in EDITABLE_FIELDS if field in data},
            )
            User.objects.filter(pk=client.pk).update(total_spent=F('total_spent') + project.budget)
        logger.info(f"Project {project.id} created by user {client.id}")
        return project

    def update(self, project_id, user, data):
        project = projects.get(project_id)
        if project.client_id != user.id:
            raise Forbidden("Only the project owner can edit this project.")
        changes = {field: data[field] for field in EDITABLE_FIELDS if field in data}
        changes['updated_at'] = self.clock.now()
        return projects.update(project.pk, **changes)

    def delete(self, project_id, user):
        project = projects.get(project_id)
        if project.client_id != user.id and user.role != 'admin':
            raise Forbidden("Only the project owner or an admin can delete this project.")
        with transaction.atomic():
            # Cascading the proposals would otherwise null accepted_proposal alone
            Project.objects.filter(pk=project.pk).update(freelancer=None, accepted_proposal=None)
            deleted = projects.delete(project.pk)
        logger.info(f"Project {project.pk} deleted by user {user.id}")
        return deleted


project_service = ProjectService()
