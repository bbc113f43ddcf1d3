from sqlalchemy import Column, Integer, String, Date, DateTime, Time, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import date, datetime, time
from typing import Optional
from learnplan.database import Base
from learnplan.errors import ValidationError
from learnplan.models.enums import (
    CommitmentType,
    SessionStatus,
    SESSION_TRANSITIONS,
    OCCUPYING_STATUSES,
)
from learnplan.timeutil import to_minutes

class LearningSession(Base):
    """
    A block of study on one topic for one child.

    Lifecycle: backlog -> planned -> scheduled -> done, plus the explicit
    unschedule (scheduled -> planned) and catch-up reset (-> backlog).
    Schedule fields are only set while scheduled or done. ``version`` is
    the optimistic concurrency token, bumped by SQLAlchemy on every flush.
    """
    __tablename__ = "learning_sessions"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    child_id = Column(Integer, ForeignKey("children.id"), nullable=False, index=True)
    estimated_minutes = Column(Integer, nullable=False)
    status = Column(Enum(SessionStatus), default=SessionStatus.BACKLOG, nullable=False)
    commitment_type = Column(Enum(CommitmentType), default=CommitmentType.PREFERRED, nullable=False)

    scheduled_day_of_week = Column(Integer)
    scheduled_start_time = Column(Time)
    scheduled_end_time = Column(Time)
    scheduled_date = Column(Date, index=True)  # None with a day_of_week = weekly placement
    skipped_from_date = Column(Date)
    completed_at = Column(DateTime)
    notes = Column(String)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    child = relationship("Child", back_populates="sessions")
    topic = relationship("Topic")

    def __init__(self, **kwargs):
        kwargs.setdefault("status", SessionStatus.BACKLOG)
        kwargs.setdefault("commitment_type", CommitmentType.PREFERRED)
        super().__init__(**kwargs)

    def _transition(self, target: SessionStatus):
        if target not in SESSION_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Session {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def plan(self):
        self._transition(SessionStatus.PLANNED)

    def schedule_to(self, day_of_week: int, start_time: time, end_time: time,
                    scheduled_date: Optional[date] = None):
        """Place the session into a concrete slot"""
        if scheduled_date is not None and scheduled_date.isoweekday() != day_of_week:
            raise ValidationError(f"{scheduled_date} is not day {day_of_week} of the week")
        if not 1 <= day_of_week <= 7:
            raise ValidationError(f"day_of_week must be 1-7, got {day_of_week}")
        if end_time <= start_time:
            raise ValidationError("Session end time must be after its start time")
        self._transition(SessionStatus.SCHEDULED)
        self.scheduled_day_of_week = day_of_week
        self.scheduled_start_time = start_time
        self.scheduled_end_time = end_time
        self.scheduled_date = scheduled_date

    def complete(self, now: Optional[datetime] = None):
        self._transition(SessionStatus.DONE)
        self.completed_at = now or datetime.utcnow()

    def unschedule(self):
        """Move a scheduled session back to planning"""
        if self.status != SessionStatus.SCHEDULED:
            raise ValidationError(f"Only scheduled sessions can be unscheduled (session {self.id} is {self.status.value})")
        self.status = SessionStatus.PLANNED
        self._clear_schedule()

    def reset_to_backlog(self, skipped_from: date):
        """Detach a missed session from its stale schedule"""
        if self.status == SessionStatus.DONE:
            raise ValidationError(f"Session {self.id} is already done")
        self.status = SessionStatus.BACKLOG
        self.skipped_from_date = skipped_from
        self._clear_schedule()

    def _clear_schedule(self):
        self.scheduled_day_of_week = None
        self.scheduled_start_time = None
        self.scheduled_end_time = None
        self.scheduled_date = None

    @property
    def can_be_rescheduled(self) -> bool:
        return self.commitment_type != CommitmentType.FIXED

    @property
    def occupies_capacity(self) -> bool:
        return self.status in OCCUPYING_STATUSES and self.scheduled_day_of_week is not None

    def falls_on(self, day: date) -> bool:
        """True if this session takes up time on the given calendar date"""
        if not self.occupies_capacity:
            return False
        if self.scheduled_date is not None:
            return self.scheduled_date == day
        return self.scheduled_day_of_week == day.isoweekday()

    @property
    def minute_range(self):
        if self.scheduled_start_time is None or self.scheduled_end_time is None:
            return None
        return to_minutes(self.scheduled_start_time), to_minutes(self.scheduled_end_time)
