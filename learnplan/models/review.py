from sqlalchemy import Column, Integer, Float, Date, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from learnplan.database import Base
from learnplan.models.enums import ReviewStatus

class Review(Base):
    """SM-2 spaced repetition state for one flashcard and one child"""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("child_id", "flashcard_id", name="uq_review_child_flashcard"),
    )

    id = Column(Integer, primary_key=True, index=True)
    flashcard_id = Column(Integer, ForeignKey("flashcards.id"), nullable=False)
    child_id = Column(Integer, ForeignKey("children.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    session_id = Column(Integer, ForeignKey("learning_sessions.id"))

    # SM-2 algorithm fields
    interval_days = Column(Integer, default=1, nullable=False)
    ease_factor = Column(Float, default=2.5, nullable=False)
    repetitions = Column(Integer, default=0, nullable=False)
    status = Column(Enum(ReviewStatus), default=ReviewStatus.NEW, nullable=False)

    due_date = Column(Date, nullable=False, index=True)
    last_reviewed_at = Column(DateTime)

    child = relationship("Child", back_populates="reviews")
    flashcard = relationship("Flashcard")

    def __init__(self, **kwargs):
        kwargs.setdefault("interval_days", 1)
        kwargs.setdefault("ease_factor", 2.5)
        kwargs.setdefault("repetitions", 0)
        kwargs.setdefault("status", ReviewStatus.NEW)
        super().__init__(**kwargs)

    def days_until_due(self, today: date) -> int:
        """Negative when overdue"""
        return (self.due_date - today).days
