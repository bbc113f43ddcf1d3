from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date, datetime
from learnplan.database import Base
from learnplan.models.enums import CatchUpStatus, PRIORITY_LABELS

class CatchUpSession(Base):
    """A missed session occurrence waiting in the catch-up lane (priority 1 = most urgent)"""
    __tablename__ = "catch_up_sessions"
    __table_args__ = (
        UniqueConstraint("original_session_id", "missed_date", name="uq_catch_up_occurrence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    original_session_id = Column(Integer, ForeignKey("learning_sessions.id"), nullable=False)
    child_id = Column(Integer, ForeignKey("children.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    estimated_minutes = Column(Integer, nullable=False)
    priority = Column(Integer, nullable=False, default=3)
    missed_date = Column(Date, nullable=False)
    reason = Column(String)
    reassigned_to_session_id = Column(Integer, ForeignKey("learning_sessions.id"))
    status = Column(Enum(CatchUpStatus), default=CatchUpStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    child = relationship("Child", back_populates="catch_up_sessions")
    topic = relationship("Topic")
    original_session = relationship("LearningSession", foreign_keys=[original_session_id])
    reassigned_to_session = relationship("LearningSession", foreign_keys=[reassigned_to_session_id])

    def __init__(self, **kwargs):
        kwargs.setdefault("status", CatchUpStatus.PENDING)
        super().__init__(**kwargs)

    @property
    def priority_label(self) -> str:
        return PRIORITY_LABELS[self.priority]

    def days_since_missed(self, today: date) -> int:
        return max(0, (today - self.missed_date).days)
