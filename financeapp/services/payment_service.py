import json
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from core.clock import default_clock
from core.exceptions import Forbidden, InvalidState, UpstreamFailure
from core.models import Milestone, User
from core.services.entity_store import milestones, projects
from core.services.notification_service import NotificationService

from ..gateway import RazorpayGateway, to_minor_units

logger = logging.getLogger(__name__)

PAID_EVENTS = ('order.paid', 'payment.captured')


class PaymentService:
    """Milestone review and payment.

    A milestone is paid only on the gateway's word: either its signed
    webhook or a fetch of the order that reports it ``paid``. Finalizing is
    idempotent, so the webhook, the client's refresh and the reconciliation
    task can all race to settle the same milestone.
    """

    def __init__(self, clock=None, notifier=None, gateway=None):
        self.clock = clock or default_clock
        self.notifier = notifier or NotificationService(clock=self.clock)
        self.gateway = gateway

    def _gateway(self):
        return self.gateway or RazorpayGateway()

    # Review

    def list_for_project(self, project_id, user):
        project = projects.get(project_id)
        if not project.is_participant(user):
            raise Forbidden("Only the project's client or assigned freelancer can view its milestones.")
        return milestones.for_project(project.id)

    @staticmethod
    def _require_client(milestone, user):
        if milestone.project.client_id != user.id:
            raise Forbidden("Only the project's client can perform this action.")

    def submit(self, milestone_id, freelancer, deliverables=None):
        with transaction.atomic():
            milestone = milestones.get(milestone_id, for_update=True)
            project = milestone.project
            if project.freelancer_id != freelancer.id:
                raise Forbidden("Only the assigned freelancer can submit this milestone.")
            if milestone.status not in ('pending', 'rejected'):
                raise InvalidState(f"Milestone cannot be submitted while {milestone.status}.")

            milestone.status = 'in_review'
            milestone.updated_at = self.clock.now()
            if deliverables is not None:
                milestone.deliverables = deliverables
            milestone.save(update_fields=['status', 'deliverables', 'updated_at'])

            self.notifier.notify(
                project.client_id,
                'milestone',
                'Milestone Submitted',
                f"'{milestone.title}' on '{project.title}' is ready for review.",
                related_id=project.id,
            )

        logger.info(f"Milestone {milestone.id} submitted for review by user {freelancer.id}")
        return milestone

    def approve(self, milestone_id, client, feedback=None):
        with transaction.atomic():
            milestone = milestones.get(milestone_id, for_update=True)
            self._require_client(milestone, client)
            if milestone.status not in ('pending', 'in_review'):
                raise InvalidState(f"Milestone is not awaiting approval (status: {milestone.status}).")

            milestone.status = 'approved'
            milestone.approved_at = milestone.updated_at = self.clock.now()
            if feedback is not None:
                milestone.feedback = feedback
            milestone.save(update_fields=['status', 'approved_at', 'feedback', 'updated_at'])

            project = milestone.project
            self.notifier.notify(
                project.freelancer_id,
                'milestone',
                'Milestone Approved',
                f"'{milestone.title}' on '{project.title}' was approved.",
                related_id=project.id,
            )

        logger.info(f"Milestone {milestone.id} approved by user {client.id}")
        return milestone

    def reject(self, milestone_id, client, feedback=None):
        with transaction.atomic():
            milestone = milestones.get(milestone_id, for_update=True)
            self._require_client(milestone, client)
            if milestone.status != 'in_review':
                raise InvalidState(f"Only milestones in review can be rejected (status: {milestone.status}).")

            milestone.status = 'rejected'
            milestone.updated_at = self.clock.now()
            milestone.feedback = feedback
            milestone.save(update_fields=['status', 'feedback', 'updated_at'])

            project = milestone.project
            self.notifier.notify(
                project.freelancer_id,
                'milestone',
                'Milestone Changes Requested',
                f"'{milestone.title}' on '{project.title}' needs changes.",
                related_id=project.id,
            )

        logger.info(f"Milestone {milestone.id} rejected by user {client.id}")
        return milestone

    # Payment

    def create_payment_intent(self, milestone_id, client):
        """Open a gateway order for an approved milestone, or return the one already open.

        A milestone carries at most one order, so a repeated request cannot
        strand a payment made against an earlier order.
        """
        currency = settings.PAYMENT_CURRENCY
        gateway = self._gateway()
        with transaction.atomic():
            milestone = milestones.get(milestone_id, for_update=True)
            self._require_client(milestone, client)
            if milestone.is_paid or milestone.status != 'approved':
                raise InvalidState("Only approved, unpaid milestones can be paid.")

            if milestone.payment_intent_id:
                logger.info(f"Reusing payment intent {milestone.payment_intent_id} for milestone {milestone.id}")
                return self._intent(milestone, gateway, milestone.payment_intent_id, {}, currency)

            project = milestone.project
            order = gateway.create_order(
                milestone.amount,
                currency,
                notes={
                    'milestone_id': milestone.id,
                    'project_id': project.id,
                    'freelancer_id': project.freelancer_id,
                },
            )

            # Status is untouched until the gateway reports the order paid
            milestone.payment_intent_id = order['id']
            milestone.updated_at = self.clock.now()
            milestone.save(update_fields=['payment_intent_id', 'updated_at'])

        logger.info(f"Payment intent {order['id']} opened for milestone {milestone.id}")
        return self._intent(milestone, gateway, order['id'], order, currency)

    @staticmethod
    def _intent(milestone, gateway, order_id, order, currency):
        return {
            'order_id': order_id,
            'amount': order.get('amount', to_minor_units(milestone.amount)),
            'currency': order.get('currency', currency),
            'key_id': gateway.key_id,
            'milestone_id': milestone.id,
        }

    def confirm_payment(self, milestone_id, client):
        """Ask the gateway whether the milestone's order is paid and settle it if so."""
        milestone = milestones.get(milestone_id)
        self._require_client(milestone, client)
        if milestone.is_paid:
            return milestone
        if not milestone.payment_intent_id:
            raise InvalidState("No payment has been started for this milestone.")

        order = self._gateway().fetch_order(milestone.payment_intent_id)
        if not self._is_settled(order, milestone):
            raise InvalidState("Payment has not been captured yet.")
        return self.finalize_payment(milestone.id)

    @staticmethod
    def _is_settled(entity, milestone, paid_status='paid'):
        """True when a gateway order (or captured payment) covers the full milestone amount."""
        if entity.get('status') != paid_status:
            return False
        paid = entity.get('amount_paid', entity.get('amount'))
        if paid is None or int(paid) < to_minor_units(milestone.amount):
            logger.error(f"Order {entity.get('id')} paid {paid} for milestone {milestone.id} worth {milestone.amount}")
            return False
        return True

    def finalize_payment(self, milestone_id):
        with transaction.atomic():
            milestone = milestones.get(milestone_id, for_update=True)
            if milestone.is_paid:
                return milestone
            if milestone.status != 'approved':
                raise InvalidState(f"Milestone must be approved before payment (status: {milestone.status}).")

            milestone.paid_at = milestone.updated_at = self.clock.now()
            milestone.status = 'paid'
            milestone.save(update_fields=['paid_at', 'status', 'updated_at'])

            project = milestone.project
            User.objects.filter(pk=project.freelancer_id).update(
                total_earnings=F('total_earnings') + milestone.amount
            )
            self.notifier.notify(
                project.freelancer_id,
                'payment',
                'Payment Received',
                f"You were paid {milestone.amount} for '{milestone.title}'.",
                related_id=project.id,
            )

        logger.info(f"Milestone {milestone.id} paid; credited {milestone.amount} to user {project.freelancer_id}")
        return milestone

    def handle_webhook(self, body, signature):
        """Verify and apply a gateway callback. Returns the settled milestone, if any."""
        self._gateway().verify_webhook(body, signature)
        try:
            event = json.loads(body)
        except (TypeError, ValueError):
            raise InvalidState("Malformed webhook payload.")

        event_type = event.get('event')
        if event_type not in PAID_EVENTS:
            logger.info(f"Ignoring Razorpay event {event_type}")
            return None

        payload = event.get('payload') or {}
        order = (payload.get('order') or {}).get('entity') or {}
        payment = (payload.get('payment') or {}).get('entity') or {}
        if event_type == 'order.paid':
            entity, order_id, paid_status = order, order.get('id'), 'paid'
        else:
            entity, order_id, paid_status = payment, payment.get('order_id'), 'captured'

        milestone = self._milestone_for_order(order_id, order.get('notes'), payment.get('notes'))
        if milestone is None:
            logger.warning(f"Razorpay {event_type} for unknown order {order_id}")
            return None
        if not self._is_settled(entity, milestone, paid_status):
            logger.warning(f"Razorpay {event_type} for order {order_id} does not settle milestone {milestone.id}")
            return None
        return self.finalize_payment(milestone.id)

    @staticmethod
    def _milestone_for_order(order_id, *notes):
        """Find the milestone an order was opened for, by current order id or by the order's notes."""
        if order_id:
            milestone = Milestone.objects.filter(payment_intent_id=order_id).first()
            if milestone is not None:
                return milestone
        # Razorpay sends empty notes as a list
        for entry in notes:
            if isinstance(entry, dict) and str(entry.get('milestone_id', '')).isdigit():
                return Milestone.objects.filter(pk=int(entry['milestone_id'])).first()
        return None

    def reconcile_pending(self):
        """Settle approved milestones whose orders were paid but never confirmed."""
        gateway = self._gateway()
        pending = Milestone.objects.filter(
            status='approved', paid_at__isnull=True, payment_intent_id__isnull=False,
        ).exclude(payment_intent_id='')

        settled = 0
        for milestone in pending:
            try:
                order = gateway.fetch_order(milestone.payment_intent_id)
            except UpstreamFailure as e:
                logger.warning(f"Could not reconcile milestone {milestone.id}: {e.detail}")
                continue
            if self._is_settled(order, milestone):
                self.finalize_payment(milestone.id)
                settled += 1
        return settled


payment_service = PaymentService()
