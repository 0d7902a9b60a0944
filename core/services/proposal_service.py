import logging
from decimal import Decimal

from dateutil.parser import isoparse
from django.db import IntegrityError, transaction

from ..clock import default_clock
from ..exceptions import Conflict, Forbidden, InvalidState, NotFound
from ..identity import authorize
from ..models import Milestone, Project, Proposal
from .entity_store import projects, proposals
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class ProposalService:
    """Submit, accept and reject proposals.

    Accepting is a single transaction: the project is claimed with a
    conditional update first, then the proposal is locked, milestones are
    materialized and the remaining pending proposals are rejected. A racing
    accept on the same project loses the conditional update and gets
    Conflict with nothing written.
    """

    def __init__(self, clock=None, notifier=None):
        self.clock = clock or default_clock
        self.notifier = notifier or NotificationService(clock=self.clock)

    def submit(self, project_id, freelancer, data):
        authorize(freelancer, 'freelancer', message="Only freelancers can submit proposals.")
        now = self.clock.now()
        with transaction.atomic():
            project = projects.get(project_id)
            if project.status != 'open':
                raise InvalidState("This project is not accepting proposals.")
            if Proposal.objects.filter(project=project, freelancer=freelancer).exists():
                raise InvalidState("You have already submitted a proposal for this project.")

            try:
                with transaction.atomic():
                    proposal = proposals.create(
                        project=project,
                        freelancer=freelancer,
                        cover_letter=data['cover_letter'],
                        proposed_budget=data['proposed_budget'],
                        proposed_timeline=data['proposed_timeline'],
                        milestones=data.get('milestones', []),
                        portfolio_samples=data.get('portfolio_samples', []),
                        questions=data.get('questions'),
                        created_at=now,
                        updated_at=now,
                    )
            except IntegrityError:
                raise InvalidState("You have already submitted a proposal for this project.")

            self.notifier.notify(
                project.client_id,
                'proposal',
                'New Proposal Received',
                f"{freelancer.username} submitted a proposal for '{project.title}'.",
                related_id=project.id,
            )

        logger.info(f"Proposal {proposal.id} submitted for project {project.id} by user {freelancer.id}")
        return proposal

    def _load_for_decision(self, proposal_id, client, project_id=None):
        proposal = proposals.get(proposal_id)
        project = proposal.project
        if project_id is not None and str(project.id) != str(project_id):
            raise NotFound("Proposal not found.")
        if project.client_id != client.id:
            raise Forbidden("Only the project owner can decide on proposals.")
        if proposal.is_terminal:
            raise InvalidState(f"Proposal has already been {proposal.status}.")
        return proposal, project

    def accept(self, proposal_id, client, project_id=None):
        with transaction.atomic():
            proposal, project = self._load_for_decision(proposal_id, client, project_id)
            now = self.clock.now()

            claimed = Project.objects.filter(pk=project.pk, status='open').update(
                status='in_progress',
                freelancer_id=proposal.freelancer_id,
                accepted_proposal_id=proposal.pk,
                updated_at=now,
            )
            if not claimed:
                raise Conflict("This project is no longer open; another proposal was already accepted.")

            proposal = Proposal.objects.select_for_update().get(pk=proposal.pk)
            if proposal.is_terminal:
                raise InvalidState(f"Proposal has already been {proposal.status}.")
            proposal.status = 'accepted'
            proposal.updated_at = now
            proposal.save(update_fields=['status', 'updated_at'])

            Milestone.objects.bulk_create([
                self._materialize(project.pk, entry, now) for entry in proposal.milestones or []
            ])

            siblings = list(
                Proposal.objects.select_for_update()
                .filter(project_id=project.pk, status='pending')
                .exclude(pk=proposal.pk)
                .values_list('pk', 'freelancer_id')
            )
            if siblings:
                Proposal.objects.filter(pk__in=[pk for pk, _ in siblings]).update(status='rejected', updated_at=now)
            for _, freelancer_id in siblings:
                self.notifier.notify(
                    freelancer_id,
                    'proposal',
                    'Proposal Not Selected',
                    f"Another proposal was accepted for '{project.title}'.",
                    related_id=project.id,
                )

            self.notifier.notify(
                proposal.freelancer_id,
                'proposal',
                'Proposal Accepted',
                f"Your proposal for '{project.title}' was accepted.",
                related_id=project.id,
            )

        logger.info(
            f"Proposal {proposal.id} accepted for project {project.id} by user {client.id}; "
            f"{len(siblings)} pending proposals rejected"
        )
        return proposal

    def reject(self, proposal_id, client, project_id=None):
        with transaction.atomic():
            proposal, project = self._load_for_decision(proposal_id, client, project_id)
            proposal = Proposal.objects.select_for_update().get(pk=proposal.pk)
            if proposal.is_terminal:
                raise InvalidState(f"Proposal has already been {proposal.status}.")
            proposal.status = 'rejected'
            proposal.updated_at = self.clock.now()
            proposal.save(update_fields=['status', 'updated_at'])

            self.notifier.notify(
                proposal.freelancer_id,
                'proposal',
                'Proposal Rejected',
                f"Your proposal for '{project.title}' was rejected.",
                related_id=project.id,
            )

        logger.info(f"Proposal {proposal.id} rejected for project {project.id} by user {client.id}")
        return proposal

    @staticmethod
    def _materialize(project_id, entry, now):
        due_date = entry.get('due_date')
        return Milestone(
            project_id=project_id,
            title=entry['title'],
            description=entry.get('description') or '',
            amount=Decimal(str(entry['amount'])),
            due_date=isoparse(due_date).date() if due_date else None,
            status='pending',
            created_at=now,
            updated_at=now,
        )


proposal_service = ProposalService()
