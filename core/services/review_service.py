import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from ..clock import default_clock
from ..exceptions import Forbidden, InvalidState
from ..models import Review, User
from .entity_store import projects, reviews

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(self, clock=None):
        self.clock = clock or default_clock

    def create(self, reviewer, project_id, reviewee_id, rating, comment=None):
        project = projects.get(project_id)
        if not project.is_participant(reviewer):
            raise Forbidden("Only project participants can leave a review.")
        if project.other_participant_id(reviewer) != int(reviewee_id):
            raise InvalidState("You can only review the other party of this project.")

        with transaction.atomic():
            if Review.objects.filter(project=project, reviewer=reviewer).exists():
                raise InvalidState("You have already reviewed this project.")
            try:
                with transaction.atomic():
                    review = reviews.create(
                        project=project,
                        reviewer=reviewer,
                        reviewee_id=reviewee_id,
                        rating=rating,
                        comment=comment,
                        created_at=self.clock.now(),
                    )
            except IntegrityError:
                raise InvalidState("You have already reviewed this project.")

            reviewee = User.objects.select_for_update().get(pk=reviewee_id)
            summary = Review.objects.filter(reviewee_id=reviewee_id).aggregate(avg=Avg('rating'), count=Count('id'))
            reviewee.rating = Decimal(str(summary['avg'] or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
            reviewee.review_count = summary['count']
            reviewee.save(update_fields=['rating', 'review_count'])

        logger.info(f"Review {review.id} on project {project.id}: user {reviewer.id} rated user {reviewee_id} {rating}/5")
        return review


review_service = ReviewService()
