from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from learnplan.database import Base

class Topic(Base):
    """Unit of learning content sessions and flashcards hang off"""
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    title = Column(String, nullable=False)
    estimated_minutes = Column(Integer, default=30)

    subject = relationship("Subject", back_populates="topics")
    flashcards = relationship("Flashcard", back_populates="topic", cascade="all, delete-orphan")


class Flashcard(Base):
    """
    Question/answer card for a topic.

    Archiving sets a lifecycle flag plus tombstone timestamp instead of
    deleting the row, so reviews keep their reference.
    """
    __tablename__ = "flashcards"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    front = Column(Text, nullable=False)
    back = Column(Text, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    topic = relationship("Topic", back_populates="flashcards")

    def __init__(self, **kwargs):
        kwargs.setdefault("is_archived", False)
        super().__init__(**kwargs)

    def archive(self, now: datetime = None):
        self.is_archived = True
        self.archived_at = now or datetime.utcnow()
