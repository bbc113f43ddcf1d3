from datetime import date, datetime, timedelta
from typing import List, Optional

from loguru import logger

from learnplan.capacity import CapacityAnalyzer, CapacitySnapshot, load_percent, utilization
from learnplan.config import settings
from learnplan.errors import ValidationError
from learnplan.models.enums import CommitmentType, DAY_NAMES, RESCHEDULE_PENALTY
from learnplan.schemas import DateRange, SlotCandidate
from learnplan.stores import SessionStore
from learnplan.timeutil import from_minutes, iter_dates, minutes_past, resolve_clock, subtract_intervals, to_minutes


def load_penalty(capacity_used: float) -> int:
    if capacity_used > 90:
        return 5  # very busy day
    if capacity_used > 70:
        return 2
    return 0


class SlotFinder:
    """Searches a bounded future window for free time-block intervals"""

    def __init__(
        self,
        analyzer: CapacityAnalyzer,
        sessions: SessionStore,
        horizon_days: int = None,
        max_results: int = None
    ):
        self.analyzer = analyzer
        self.sessions = sessions
        self.horizon_days = settings.slot_horizon_days if horizon_days is None else horizon_days
        self.max_results = settings.slot_max_results if max_results is None else max_results

    def suggest_slots(
        self,
        session_id: int,
        original_date: date,
        horizon_days: Optional[int] = None,
        max_results: Optional[int] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> List[SlotCandidate]:
        """Ranked replacement slots for an existing session"""
        session = self.sessions.get(session_id)
        return self.find_slots(
            session.child_id,
            session.estimated_minutes,
            session.commitment_type,
            original_date,
            horizon_days=horizon_days,
            max_results=max_results,
            exclude_session_id=session.id,
            today=today,
            now=now,
        )

    def search_window(self, original_date: date, horizon_days: int, today: date) -> DateRange:
        """Days after the original date, never before today"""
        start = max(original_date + timedelta(days=1), today)
        return DateRange.of(start, start + timedelta(days=horizon_days - 1))

    def find_slots(
        self,
        child_id: int,
        estimated_minutes: int,
        commitment_type: CommitmentType,
        original_date: date,
        horizon_days: Optional[int] = None,
        max_results: Optional[int] = None,
        snapshot: Optional[CapacitySnapshot] = None,
        exclude_session_id: Optional[int] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None
    ) -> List[SlotCandidate]:
        """
        Rank every free interval that fits the duration.

        Args:
            child_id: Child whose time blocks are searched
            estimated_minutes: Duration to place
            commitment_type: Drives the reschedule penalty
            original_date: Date the session was meant to happen
            horizon_days: Number of days searched
            max_results: Cap on returned candidates
            snapshot: Capacity snapshot to search (read from the stores if omitted)
            exclude_session_id: Session whose own minutes are ignored
            today: First day that may be suggested; a whole day when given alone
            now: Current time; earlier same-day gaps are cut off (defaults to
                the wall clock unless today is given)

        Returns:
            Candidates ordered easiest first; the first one is recommended.
            Empty when nothing fits.
        """
        horizon_days = self.horizon_days if horizon_days is None else horizon_days
        max_results = self.max_results if max_results is None else max_results
        if horizon_days < 1:
            raise ValidationError(f"horizon_days must be at least 1, got {horizon_days}")
        if max_results < 1:
            raise ValidationError(f"max_results must be at least 1, got {max_results}")
        if estimated_minutes <= 0:
            raise ValidationError(f"estimated_minutes must be positive, got {estimated_minutes}")

        today, now = resolve_clock(today, now)

        window = self.search_window(original_date, horizon_days, today)
        if snapshot is None:
            snapshot = self.analyzer.snapshot(child_id, window)

        penalty = RESCHEDULE_PENALTY[commitment_type]
        candidates = []
        for day in iter_dates(window.start, window.end):
            capacity = self.analyzer.day_capacity(snapshot, day, exclude_session_id)
            projected = capacity.scheduled_minutes + estimated_minutes
            if projected > capacity.available_minutes:
                continue

            days_from_original = (day - original_date).days
            difficulty = (
                days_from_original + penalty
                + load_penalty(load_percent(projected, capacity.available_minutes))
            )
            earliest = minutes_past(now) if now is not None and day == now.date() else 0
            busy = [
                s.minute_range for s in snapshot.sessions_on(day, exclude_session_id)
                if s.minute_range is not None
            ]

            for block in snapshot.blocks_on(day):
                window_minutes = (to_minutes(block.start_time), to_minutes(block.end_time))
                for gap_start, gap_end in subtract_intervals(window_minutes, busy):
                    gap_start = max(gap_start, earliest)
                    if gap_end - gap_start < estimated_minutes:
                        continue
                    candidates.append(SlotCandidate(
                        date=day,
                        day_of_week=day.isoweekday(),
                        day_name=DAY_NAMES[day.isoweekday()],
                        start_time=from_minutes(gap_start),
                        end_time=from_minutes(gap_start + estimated_minutes),
                        time_block_id=block.id,
                        capacity_used=utilization(projected, capacity.available_minutes),
                        days_from_original=days_from_original,
                        difficulty=difficulty,
                    ))

        candidates.sort(key=lambda c: (c.difficulty, c.days_from_original, c.date, c.start_time))
        ranked = candidates[:max_results]
        if ranked:
            ranked[0].recommended = True

        logger.debug(
            "Slot search for child {} ({} min, {}) from {}: {} candidates, returning {}",
            child_id, estimated_minutes, commitment_type.value, window.start, len(candidates), len(ranked)
        )
        return ranked
