from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from loguru import logger
from learnplan.models import Child, LearningSession
from learnplan.models.enums import SessionStatus, OCCUPYING_STATUSES
from learnplan.schemas import DateRange, SessionCreate
from learnplan.errors import ConflictError, NotFoundError
from datetime import date, datetime, time
from typing import List, Optional


class SqlSessionStore:
    """
    SessionStore over a SQLAlchemy session.

    ``commit`` flushes but does not commit the transaction; callers wrap a
    scheduling decision in ``learnplan.database.transaction``.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, session_id: int) -> LearningSession:
        session = self.db.query(LearningSession).filter(LearningSession.id == session_id).first()
        if session is None:
            raise NotFoundError("LearningSession", session_id)
        return session

    def for_child(self, child_id: int, date_range: DateRange) -> List[LearningSession]:
        """Sessions taking up capacity somewhere inside the range"""
        return self.db.query(LearningSession).filter(
            LearningSession.child_id == child_id,
            LearningSession.status.in_(OCCUPYING_STATUSES),
            LearningSession.scheduled_day_of_week.isnot(None),
            or_(
                LearningSession.scheduled_date.is_(None),
                LearningSession.scheduled_date.between(date_range.start, date_range.end),
            )
        ).order_by(LearningSession.scheduled_date, LearningSession.scheduled_start_time).all()

    def commit(self, session: LearningSession, expected_version: Optional[int]) -> LearningSession:
        if session.version != expected_version:
            raise ConflictError(
                f"Session {session.id} is at version {session.version}, expected {expected_version}"
            )

        if session.status == SessionStatus.SCHEDULED:
            # Serialises scheduling writes per child on databases with row locks
            self.db.query(Child).filter(Child.id == session.child_id).with_for_update().first()
            clash = self._find_clash(session)
            if clash is not None:
                logger.warning(
                    "Slot {} {}-{} for child {} already taken by session {}",
                    session.scheduled_date or f"day {session.scheduled_day_of_week}",
                    session.scheduled_start_time, session.scheduled_end_time,
                    session.child_id, clash.id
                )
                raise ConflictError(f"Slot no longer available (taken by session {clash.id})")

        session_id = session.id
        self.db.add(session)
        try:
            self.db.flush()
        except StaleDataError as e:
            # A failed flush leaves the transaction unusable until rolled back
            self.db.rollback()
            raise ConflictError(f"Session {session_id} was changed concurrently") from e
        return session

    def _find_clash(self, session: LearningSession) -> Optional[LearningSession]:
        query = self.db.query(LearningSession).filter(
            LearningSession.child_id == session.child_id,
            LearningSession.status.in_(OCCUPYING_STATUSES),
            LearningSession.scheduled_day_of_week == session.scheduled_day_of_week,
        )
        if session.id is not None:
            query = query.filter(LearningSession.id != session.id)
        if session.scheduled_date is not None:
            # Dated placements clash with the same date and with weekly ones
            query = query.filter(or_(
                LearningSession.scheduled_date.is_(None),
                LearningSession.scheduled_date == session.scheduled_date,
            ))

        start, end = session.minute_range
        for other in query.all():
            other_range = other.minute_range
            if other_range and other_range[0] < end and other_range[1] > start:
                return other
        return None


def create_session(db: Session, data: SessionCreate) -> LearningSession:
    """Create a backlog session"""
    session = LearningSession(**data.model_dump())
    db.add(session)
    db.commit()
    db.refresh(session)
    return session

def get_session(db: Session, session_id: int) -> LearningSession:
    return SqlSessionStore(db).get(session_id)

def get_sessions(db: Session, child_id: int, status: Optional[SessionStatus] = None) -> List[LearningSession]:
    """All sessions of a child, optionally filtered by status"""
    query = db.query(LearningSession).filter(LearningSession.child_id == child_id)
    if status is not None:
        query = query.filter(LearningSession.status == status)
    return query.order_by(LearningSession.id).all()

def plan_session(db: Session, session_id: int) -> LearningSession:
    store = SqlSessionStore(db)
    session = store.get(session_id)
    version = session.version
    session.plan()
    store.commit(session, version)
    db.commit()
    return session

def schedule_session(
    db: Session,
    session_id: int,
    day_of_week: int,
    start_time: time,
    end_time: time,
    scheduled_date: Optional[date] = None,
    expected_version: Optional[int] = None
) -> LearningSession:
    """
    Place a planned session into a slot.

    The slot is re-validated at write time; a clash raises ConflictError and
    leaves the session untouched.
    """
    store = SqlSessionStore(db)
    session = store.get(session_id)
    version = session.version if expected_version is None else expected_version
    try:
        session.schedule_to(day_of_week, start_time, end_time, scheduled_date)
        store.commit(session, version)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Scheduled session {} on {} {}-{}", session.id,
                scheduled_date or f"day {day_of_week}", start_time, end_time)
    return session

def unschedule_session(db: Session, session_id: int) -> LearningSession:
    store = SqlSessionStore(db)
    session = store.get(session_id)
    version = session.version
    session.unschedule()
    store.commit(session, version)
    db.commit()
    return session

def complete_session(db: Session, session_id: int, now: Optional[datetime] = None) -> LearningSession:
    store = SqlSessionStore(db)
    session = store.get(session_id)
    version = session.version
    session.complete(now)
    store.commit(session, version)
    db.commit()
    return session
