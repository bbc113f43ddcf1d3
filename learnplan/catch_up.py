from contextlib import nullcontext
from datetime import date, datetime, timedelta
from typing import Callable, ContextManager, List, Optional

from loguru import logger

from learnplan.capacity import CapacityAnalyzer
from learnplan.config import settings
from learnplan.errors import ConflictError, NotFoundError, ValidationError
from learnplan.models import CatchUpSession, LearningSession
from learnplan.models.enums import (
    BASE_CATCH_UP_PRIORITY,
    CatchUpStatus,
    CommitmentType,
    SessionStatus,
)
from learnplan.schemas import DateRange, RedistributionDetail, RedistributionSummary
from learnplan.slot_finder import SlotFinder
from learnplan.stores import CatchUpStore, SessionStore
from learnplan.timeutil import resolve_clock

MIN_PRIORITY = 1
MAX_PRIORITY = 5

# Why an entry in each state cannot be cancelled
CANCEL_REJECTIONS = {
    CatchUpStatus.PENDING: None,
    CatchUpStatus.REASSIGNED: "it was reassigned; unschedule the replacement session first",
    CatchUpStatus.COMPLETED: "it is already completed",
    CatchUpStatus.CANCELLED: "it is already cancelled",
}

COMPLETABLE = {
    CatchUpStatus.PENDING: True,
    CatchUpStatus.REASSIGNED: True,
    CatchUpStatus.COMPLETED: False,
    CatchUpStatus.CANCELLED: False,
}


def validate_priority(priority) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError(f"Priority must be an integer, got {priority!r}")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValidationError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}")
    return priority


class CatchUpManager:
    """Tracks missed sessions and moves them back into free capacity"""

    def __init__(
        self,
        catch_ups: CatchUpStore,
        sessions: SessionStore,
        slot_finder: SlotFinder,
        analyzer: CapacityAnalyzer,
        unit_of_work: Callable[[], ContextManager] = nullcontext,
        escalation_days: int = None,
        horizon_days: int = None
    ):
        self.catch_ups = catch_ups
        self.sessions = sessions
        self.slot_finder = slot_finder
        self.analyzer = analyzer
        self.unit_of_work = unit_of_work
        self.escalation_days = settings.catch_up_escalation_days if escalation_days is None else escalation_days
        self.horizon_days = settings.slot_horizon_days if horizon_days is None else horizon_days
        if self.escalation_days < 1:
            raise ValueError(f"escalation_days must be at least 1, got {self.escalation_days}")
        if self.horizon_days < 1:
            raise ValueError(f"horizon_days must be at least 1, got {self.horizon_days}")

    def priority_for(self, commitment_type: CommitmentType, missed_date: date, today: date) -> int:
        """Commitment-based priority, one level more urgent per full escalation period"""
        periods = max(0, (today - missed_date).days) // self.escalation_days
        priority = BASE_CATCH_UP_PRIORITY[commitment_type] - periods
        return min(MAX_PRIORITY, max(MIN_PRIORITY, priority))

    def record_missed(
        self,
        session_id: int,
        missed_date: date,
        reason: Optional[str] = None,
        today: Optional[date] = None
    ) -> CatchUpSession:
        """
        Move a missed session occurrence into the catch-up lane.

        Recording the same (session, missed_date) twice returns the first
        entry. The session itself goes back to the backlog.
        """
        today = today or date.today()
        if missed_date > today:
            raise ValidationError(f"Cannot record {missed_date} as missed before it happens")

        with self.unit_of_work():
            session = self.sessions.get(session_id)
            existing = self.catch_ups.for_occurrence(session.id, missed_date)
            if existing is not None:
                logger.debug("Session {} already has catch-up {} for {}", session.id, existing.id, missed_date)
                return existing
            if session.status == SessionStatus.DONE:
                raise ValidationError(f"Session {session.id} is done and cannot be missed")

            entry = CatchUpSession(
                original_session_id=session.id,
                child_id=session.child_id,
                topic_id=session.topic_id,
                estimated_minutes=session.estimated_minutes,
                priority=self.priority_for(session.commitment_type, missed_date, today),
                missed_date=missed_date,
                reason=reason,
                status=CatchUpStatus.PENDING,
            )
            version = session.version
            session.reset_to_backlog(missed_date)
            self.sessions.commit(session, version)
            self.catch_ups.save(entry)

        logger.info(
            "Recorded missed session {} on {} as catch-up {} (priority {})",
            session_id, missed_date, entry.id, entry.priority
        )
        return entry

    def pending(self, child_id: int) -> List[CatchUpSession]:
        """The catch-up lane in processing order"""
        return sorted(self.catch_ups.pending(child_id), key=_lane_order)

    def redistribute(
        self,
        child_id: int,
        max_sessions: Optional[int] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> RedistributionSummary:
        """
        Place up to max_sessions pending entries into free slots.

        Entries are processed most urgent and oldest first against a single
        capacity snapshot that is updated after every placement. Entries
        without a slot stay pending. A storage conflict stops the run with
        ConflictError carrying the summary of the placements already made.
        Slots earlier than now are never used; passing only today opens the
        whole of that day.
        """
        max_sessions = settings.catch_up_redistribute_max if max_sessions is None else max_sessions
        if max_sessions < 0:
            raise ValidationError(f"max_sessions must not be negative, got {max_sessions}")

        today, now = resolve_clock(today, now)
        summary = RedistributionSummary()
        lane = self.pending(child_id)[:max_sessions]
        if not lane:
            return summary

        snapshot = self.analyzer.snapshot(
            child_id, DateRange.of(today, today + timedelta(days=self.horizon_days))
        )

        for entry in lane:
            commitment = self._commitment_of(entry)
            candidates = self.slot_finder.find_slots(
                child_id,
                entry.estimated_minutes,
                commitment,
                entry.missed_date,
                horizon_days=self.horizon_days,
                max_results=1,
                snapshot=snapshot,
                today=today,
                now=now,
            )
            if not candidates:
                logger.warning("No slot for catch-up {} ({} min), leaving it pending", entry.id, entry.estimated_minutes)
                summary.unresolved_count += 1
                summary.details.append(RedistributionDetail(
                    catch_up_id=entry.id, priority=entry.priority, resolved=False
                ))
                continue

            slot = candidates[0]
            new_session = LearningSession(
                topic_id=entry.topic_id,
                child_id=entry.child_id,
                estimated_minutes=entry.estimated_minutes,
                commitment_type=CommitmentType.FLEXIBLE,
                status=SessionStatus.PLANNED,
                notes=f"Catch-up for session {entry.original_session_id} missed {entry.missed_date}",
            )
            new_session.schedule_to(slot.day_of_week, slot.start_time, slot.end_time, slot.date)

            try:
                with self.unit_of_work():
                    self.sessions.commit(new_session, None)
                    entry.status = CatchUpStatus.REASSIGNED
                    entry.reassigned_to_session_id = new_session.id
                    self.catch_ups.save(entry)
            except ConflictError as e:
                logger.warning("Redistribution for child {} stopped on conflict: {}", child_id, e)
                raise ConflictError(str(e), summary=summary) from e

            snapshot.add(new_session)
            summary.reassigned_count += 1
            summary.details.append(RedistributionDetail(
                catch_up_id=entry.id,
                priority=entry.priority,
                resolved=True,
                new_session_id=new_session.id,
                slot=slot,
            ))
            logger.info(
                "Catch-up {} reassigned to session {} on {} {}-{}",
                entry.id, new_session.id, slot.date, slot.start_time, slot.end_time
            )

        return summary

    def set_priority(self, catch_up_id: int, priority: int) -> CatchUpSession:
        """Manual override of an entry's priority"""
        priority = validate_priority(priority)
        with self.unit_of_work():
            entry = self.catch_ups.get(catch_up_id)
            entry.priority = priority
            self.catch_ups.save(entry)
        logger.info("Catch-up {} priority set to {}", catch_up_id, priority)
        return entry

    def cancel(self, catch_up_id: int, reason: Optional[str] = None) -> CatchUpSession:
        with self.unit_of_work():
            entry = self.catch_ups.get(catch_up_id)
            rejection = CANCEL_REJECTIONS[entry.status]
            if rejection is not None:
                raise ValidationError(f"Catch-up {catch_up_id} cannot be cancelled: {rejection}")
            entry.status = CatchUpStatus.CANCELLED
            if reason:
                entry.reason = reason
            self.catch_ups.save(entry)
        logger.info("Catch-up {} cancelled", catch_up_id)
        return entry

    def complete(self, catch_up_id: int) -> CatchUpSession:
        with self.unit_of_work():
            entry = self.catch_ups.get(catch_up_id)
            if not COMPLETABLE[entry.status]:
                raise ValidationError(f"Catch-up {catch_up_id} is {entry.status.value} and cannot be completed")
            entry.status = CatchUpStatus.COMPLETED
            self.catch_ups.save(entry)
        return entry

    def _commitment_of(self, entry: CatchUpSession) -> CommitmentType:
        try:
            return self.sessions.get(entry.original_session_id).commitment_type
        except NotFoundError:
            logger.warning("Original session {} of catch-up {} is gone; treating as flexible",
                           entry.original_session_id, entry.id)
            return CommitmentType.FLEXIBLE


def _lane_order(entry: CatchUpSession):
    return entry.priority, entry.missed_date, entry.id
