from sqlalchemy.orm import Session
from learnplan.models import Review
from learnplan.models.enums import ReviewStatus
from learnplan.errors import NotFoundError
from datetime import date
from typing import List, Optional


class SqlReviewStore:
    """ReviewStore over a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, review_id: int) -> Review:
        review = self.db.query(Review).filter(Review.id == review_id).first()
        if review is None:
            raise NotFoundError("Review", review_id)
        return review

    def for_flashcard(self, child_id: int, flashcard_id: int) -> Optional[Review]:
        return self.db.query(Review).filter(
            Review.child_id == child_id,
            Review.flashcard_id == flashcard_id
        ).first()

    def due(self, child_id: int, today: date, limit: int) -> List[Review]:
        """Due or overdue reviews that have been seen at least once, oldest due first"""
        return self.db.query(Review).filter(
            Review.child_id == child_id,
            Review.due_date <= today,
            Review.status.notin_([ReviewStatus.NEW, ReviewStatus.MASTERED])
        ).order_by(Review.due_date.asc(), Review.id.asc()).limit(limit).all()

    def new(self, child_id: int, limit: int) -> List[Review]:
        """Never-graded reviews in creation order"""
        return self.db.query(Review).filter(
            Review.child_id == child_id,
            Review.status == ReviewStatus.NEW
        ).order_by(Review.id.asc()).limit(limit).all()

    def save(self, review: Review) -> Review:
        self.db.add(review)
        self.db.flush()
        return review
