from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from learnplan.database import Base

class Child(Base):
    """Learner profile; owns every scheduling record below it"""
    __tablename__ = "children"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    grade = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    subjects = relationship("Subject", back_populates="child", cascade="all, delete-orphan")
    time_blocks = relationship("TimeBlock", back_populates="child", cascade="all, delete-orphan")
    sessions = relationship("LearningSession", back_populates="child", cascade="all, delete-orphan")
    catch_up_sessions = relationship("CatchUpSession", back_populates="child", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="child", cascade="all, delete-orphan")


class Subject(Base):
    """Parent-defined subject grouping topics"""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    child_id = Column(Integer, ForeignKey("children.id"), nullable=False)
    name = Column(String, nullable=False)

    child = relationship("Child", back_populates="subjects")
    topics = relationship("Topic", back_populates="subject", cascade="all, delete-orphan")
