from sqlalchemy.orm import Session
from learnplan.models import CatchUpSession
from learnplan.models.enums import CatchUpStatus
from learnplan.errors import NotFoundError
from datetime import date
from typing import List, Optional


class SqlCatchUpStore:
    """CatchUpStore over a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, catch_up_id: int) -> CatchUpSession:
        entry = self.db.query(CatchUpSession).filter(CatchUpSession.id == catch_up_id).first()
        if entry is None:
            raise NotFoundError("CatchUpSession", catch_up_id)
        return entry

    def pending(self, child_id: int) -> List[CatchUpSession]:
        """The catch-up lane: most urgent first, then oldest miss first"""
        return self.db.query(CatchUpSession).filter(
            CatchUpSession.child_id == child_id,
            CatchUpSession.status == CatchUpStatus.PENDING
        ).order_by(
            CatchUpSession.priority.asc(),
            CatchUpSession.missed_date.asc(),
            CatchUpSession.id.asc()
        ).all()

    def for_occurrence(self, session_id: int, missed_date: date) -> Optional[CatchUpSession]:
        return self.db.query(CatchUpSession).filter(
            CatchUpSession.original_session_id == session_id,
            CatchUpSession.missed_date == missed_date
        ).first()

    def save(self, entry: CatchUpSession) -> CatchUpSession:
        self.db.add(entry)
        self.db.flush()
        return entry


def get_catch_ups(db: Session, child_id: int, status: Optional[CatchUpStatus] = None) -> List[CatchUpSession]:
    """Catch-up entries for a child in lane order"""
    query = db.query(CatchUpSession).filter(CatchUpSession.child_id == child_id)
    if status is not None:
        query = query.filter(CatchUpSession.status == status)
    return query.order_by(
        CatchUpSession.priority.asc(),
        CatchUpSession.missed_date.asc()
    ).all()
