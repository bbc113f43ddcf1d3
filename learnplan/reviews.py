from contextlib import nullcontext
from datetime import date, datetime
from typing import Callable, ContextManager, Iterable, List, Optional

from loguru import logger

from learnplan.errors import OwnershipError
from learnplan.models import Flashcard, LearningSession, Review
from learnplan.models.enums import ReviewStatus
from learnplan.sm2 import SM2Algorithm, parse_quality
from learnplan.stores import ReviewStore

QUEUE_DUE_LIMIT = 15
QUEUE_NEW_LIMIT = 5
QUEUE_SIZE = 20
DUE_PER_NEW = 3


class ReviewScheduler:
    """Owns the spaced repetition state of every (child, flashcard) review"""

    def __init__(
        self,
        reviews: ReviewStore,
        algorithm: SM2Algorithm = None,
        unit_of_work: Callable[[], ContextManager] = nullcontext
    ):
        self.reviews = reviews
        self.algorithm = algorithm or SM2Algorithm()
        self.unit_of_work = unit_of_work

    def grade_review(
        self,
        review_id: int,
        outcome,
        child_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Review:
        """
        Apply a graded outcome to a review.

        Args:
            review_id: Review to grade
            outcome: 0-5 quality or again/hard/good/easy
            child_id: Requesting child; a mismatch raises OwnershipError
            now: Review time (defaults to the current time)
        """
        quality = parse_quality(outcome)
        now = now or datetime.now()

        with self.unit_of_work():
            review = self.reviews.get(review_id)
            if child_id is not None and review.child_id != child_id:
                raise OwnershipError(f"Review {review_id} does not belong to child {child_id}")

            old_status = review.status
            new_ef, new_interval, new_reps, due = self.algorithm.calculate_next_review(
                review.ease_factor,
                review.interval_days,
                review.repetitions,
                quality,
                reference_date=now.date()
            )
            review.ease_factor = new_ef
            review.interval_days = new_interval
            review.repetitions = new_reps
            review.status = self.algorithm.next_status(quality, new_reps, new_interval)
            review.last_reviewed_at = now
            review.due_date = due
            self.reviews.save(review)

        logger.info(
            "Graded review {} q={}: {} -> {}, interval {}d, ease {:.2f}, due {}",
            review.id, quality, old_status.value, review.status.value,
            review.interval_days, review.ease_factor, review.due_date
        )
        return review

    def start_review(
        self,
        child_id: int,
        flashcard: Flashcard,
        session_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Review:
        """Create the first-exposure review for a card, or return the existing one"""
        existing = self.reviews.for_flashcard(child_id, flashcard.id)
        if existing is not None:
            return existing

        now = now or datetime.now()
        ease, interval, reps, due = self.algorithm.initialize(now.date())
        review = Review(
            flashcard_id=flashcard.id,
            child_id=child_id,
            topic_id=flashcard.topic_id,
            session_id=session_id,
            ease_factor=ease,
            interval_days=interval,
            repetitions=reps,
            status=ReviewStatus.NEW,
            due_date=due
        )
        with self.unit_of_work():
            self.reviews.save(review)
        logger.debug("Started review {} for flashcard {} (child {})", review.id, flashcard.id, child_id)
        return review

    def start_reviews_for_session(
        self,
        session: LearningSession,
        flashcards: Iterable[Flashcard],
        now: Optional[datetime] = None
    ) -> List[Review]:
        """Start reviews for every active card of a completed session's topic"""
        return [
            self.start_review(session.child_id, card, session_id=session.id, now=now)
            for card in flashcards
            if not card.is_archived
        ]

    def due_reviews(self, child_id: int, today: Optional[date] = None, limit: int = 20) -> List[Review]:
        return self.reviews.due(child_id, today or date.today(), limit)

    def review_queue(self, child_id: int, today: Optional[date] = None) -> List[Review]:
        """Three due reviews, then one new card, repeated; capped per sitting"""
        today = today or date.today()
        due = self.reviews.due(child_id, today, QUEUE_DUE_LIMIT)
        new = self.reviews.new(child_id, QUEUE_NEW_LIMIT)

        queue = []
        due_index = new_index = 0
        while due_index < len(due) or new_index < len(new):
            batch = due[due_index:due_index + DUE_PER_NEW]
            queue.extend(batch)
            due_index += len(batch)
            if new_index < len(new):
                queue.append(new[new_index])
                new_index += 1

        return queue[:QUEUE_SIZE]
