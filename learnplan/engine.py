from datetime import date, datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from learnplan.capacity import CapacityAnalyzer
from learnplan.catch_up import CatchUpManager
from learnplan.config import settings
from learnplan.crud import SqlStores, active_flashcards, complete_session
from learnplan.errors import ConflictError, NotFoundError, OwnershipError
from learnplan.models import LearningSession, Review
from learnplan.models.enums import CommitmentType, SessionStatus
from learnplan.reviews import ReviewScheduler
from learnplan.schemas import DateRange, RescheduledSession
from learnplan.slot_finder import SlotFinder
from learnplan.timeutil import resolve_clock


class SchedulingEngine:
    """Wires the scheduling components to one set of stores"""

    def __init__(self, stores, auto_reschedule_max_difficulty: int = None):
        self.stores = stores
        self.capacity = CapacityAnalyzer(stores.time_blocks, stores.sessions)
        self.slots = SlotFinder(self.capacity, stores.sessions)
        self.catch_up = CatchUpManager(
            stores.catch_ups,
            stores.sessions,
            self.slots,
            self.capacity,
            unit_of_work=stores.transaction
        )
        self.reviews = ReviewScheduler(stores.reviews, unit_of_work=stores.transaction)
        self.auto_reschedule_max_difficulty = (
            settings.auto_reschedule_max_difficulty
            if auto_reschedule_max_difficulty is None else auto_reschedule_max_difficulty
        )

    @classmethod
    def for_db(cls, db: Session) -> "SchedulingEngine":
        return cls(SqlStores(db))

    def skip_session_day(
        self,
        session_id: int,
        original_date: date,
        reason: Optional[str] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Record a missed day and return replacement suggestions for it"""
        today, now = resolve_clock(today, now)
        catch_up = self.catch_up.record_missed(session_id, original_date, reason, today=today)
        suggestions = self.slots.suggest_slots(session_id, original_date, today=today, now=now)
        return {
            "catch_up_session": catch_up,
            "reschedule_suggestions": suggestions,
        }

    def auto_reschedule_flexible(
        self,
        child_id: int,
        from_date: date,
        session_ids: Optional[List[int]] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> List[RescheduledSession]:
        """
        Move reschedulable sessions off from_date into their easiest slot.

        Without session_ids every flexible session placed on from_date is
        considered. Fixed sessions never move, and a session only moves when
        its recommended slot is no harder than auto_reschedule_max_difficulty.
        Weekly placements stay put. A slot taken meanwhile leaves that
        session where it was.

        Returns:
            One record per session that was moved.
        """
        today, now = resolve_clock(today, now)
        sessions = self._reschedule_candidates(child_id, from_date, session_ids)

        moved = []
        for session in sessions:
            if not session.can_be_rescheduled:
                logger.debug("Session {} is fixed, leaving it in place", session.id)
                continue
            if session.status != SessionStatus.SCHEDULED or session.scheduled_date is None:
                logger.debug("Session {} has no dated placement to move", session.id)
                continue

            candidates = self.slots.suggest_slots(session.id, from_date, max_results=1, today=today, now=now)
            if not candidates or candidates[0].difficulty > self.auto_reschedule_max_difficulty:
                logger.info("No easy slot for session {}, leaving it on {}", session.id, session.scheduled_date)
                continue

            slot = candidates[0]
            session_id = session.id
            try:
                with self.stores.transaction():
                    version = session.version
                    session.unschedule()
                    session.schedule_to(slot.day_of_week, slot.start_time, slot.end_time, slot.date)
                    self.stores.sessions.commit(session, version)
            except ConflictError as e:
                logger.warning("Could not move session {}: {}", session_id, e)
                continue

            moved.append(RescheduledSession(session_id=session_id, from_date=from_date, slot=slot))
            logger.info(
                "Moved session {} from {} to {} {}-{}",
                session_id, from_date, slot.date, slot.start_time, slot.end_time
            )
        return moved

    def _reschedule_candidates(
        self,
        child_id: int,
        from_date: date,
        session_ids: Optional[List[int]]
    ) -> List[LearningSession]:
        if session_ids is None:
            return [
                s for s in self.stores.sessions.for_child(child_id, DateRange.of(from_date, from_date))
                if s.commitment_type == CommitmentType.FLEXIBLE
                and s.status == SessionStatus.SCHEDULED
                and s.falls_on(from_date)
            ]

        sessions = []
        for session_id in session_ids:
            try:
                session = self.stores.sessions.get(session_id)
            except NotFoundError:
                logger.warning("Session {} not found, skipping", session_id)
                continue
            if session.child_id != child_id:
                raise OwnershipError(f"Session {session_id} does not belong to child {child_id}")
            sessions.append(session)
        return sessions

    def finish_session(self, session_id: int, now: Optional[datetime] = None) -> List[Review]:
        """Mark a session done and start reviews for its topic's active flashcards"""
        db = self.stores.db
        session = complete_session(db, session_id, now)
        return self.reviews.start_reviews_for_session(
            session, active_flashcards(db, session.topic_id), now=now
        )
