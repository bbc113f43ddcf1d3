"""
Capacity analysis for a child's weekly time blocks.

Every public call reads the stores afresh. ``CapacitySnapshot`` holds one
consistent read of time blocks and sessions for a window, so a batch
operation can recompute capacity in memory after each placement.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Union, Tuple

from loguru import logger

from learnplan.config import settings
from learnplan.errors import ValidationError
from learnplan.models import LearningSession, TimeBlock
from learnplan.models.enums import CapacityStatus
from learnplan.schemas import BalancingHint, DailyCapacity, DateRange, WeeklyCapacity
from learnplan.stores import SessionStore, TimeBlockStore
from learnplan.timeutil import iter_dates

MIN_ACTIVE_DAYS = 5


@dataclass
class CapacitySnapshot:
    """Time blocks and occupying sessions of one child over a window"""
    child_id: int
    date_range: DateRange
    time_blocks: List[TimeBlock]
    sessions: List[LearningSession]
    _blocks_by_day: Dict[int, List[TimeBlock]] = field(init=False, repr=False)

    def __post_init__(self):
        self._blocks_by_day = defaultdict(list)
        for block in sorted(self.time_blocks, key=lambda b: (b.day_of_week, b.start_time)):
            self._blocks_by_day[block.day_of_week].append(block)

    def covers(self, day: date) -> bool:
        return day in self.date_range

    def blocks_on(self, day: date) -> List[TimeBlock]:
        return self._blocks_by_day.get(day.isoweekday(), [])

    def sessions_on(self, day: date, exclude_session_id: Optional[int] = None) -> List[LearningSession]:
        return [
            s for s in self.sessions
            if s.falls_on(day) and (exclude_session_id is None or s.id != exclude_session_id)
        ]

    def add(self, session: LearningSession):
        """Record a placement made after the snapshot was read"""
        self.sessions.append(session)


def load_percent(scheduled: int, available: int) -> float:
    """Unrounded scheduled share of available minutes; 0 when nothing is available"""
    if available <= 0:
        return 0.0
    return scheduled / available * 100


def utilization(scheduled: int, available: int) -> float:
    """load_percent rounded to one decimal for display"""
    return round(load_percent(scheduled, available), 1)


class CapacityAnalyzer:
    """Read-side aggregation of available versus scheduled minutes"""

    def __init__(
        self,
        time_blocks: TimeBlockStore,
        sessions: SessionStore,
        warning_percent: float = None,
        over_percent: float = None
    ):
        self.time_blocks = time_blocks
        self.sessions = sessions
        self.warning_percent = settings.capacity_warning_percent if warning_percent is None else warning_percent
        self.over_percent = settings.capacity_over_percent if over_percent is None else over_percent
        if not 0 <= self.warning_percent <= self.over_percent:
            raise ValueError(
                f"warning threshold {self.warning_percent} must be between 0 and over threshold {self.over_percent}"
            )

    def status_for(self, percent: float) -> CapacityStatus:
        if percent >= self.over_percent:
            return CapacityStatus.OVER
        if percent >= self.warning_percent:
            return CapacityStatus.WARNING
        return CapacityStatus.OK

    def snapshot(self, child_id: int, date_range: DateRange) -> CapacitySnapshot:
        """Fresh read of the stores for a window"""
        return CapacitySnapshot(
            child_id=child_id,
            date_range=date_range,
            time_blocks=list(self.time_blocks.for_child(child_id)),
            sessions=list(self.sessions.for_child(child_id, date_range)),
        )

    def analyze(self, child_id: int, date_range: Union[DateRange, Tuple[date, date]]) -> List[DailyCapacity]:
        """One capacity record per calendar date in the range"""
        date_range = _coerce_range(date_range)
        snapshot = self.snapshot(child_id, date_range)
        days = [self.day_capacity(snapshot, day) for day in iter_dates(date_range.start, date_range.end)]
        logger.debug("Analyzed capacity for child {} over {} days", child_id, date_range.days)
        return days

    def day_capacity(
        self,
        snapshot: CapacitySnapshot,
        day: date,
        exclude_session_id: Optional[int] = None
    ) -> DailyCapacity:
        """Capacity of one date computed from a snapshot"""
        if not snapshot.covers(day):
            raise ValidationError(f"{day} is outside the capacity snapshot {snapshot.date_range.start}..{snapshot.date_range.end}")

        blocks = snapshot.blocks_on(day)
        sessions = snapshot.sessions_on(day, exclude_session_id)
        available = sum(block.duration_minutes for block in blocks)
        scheduled = sum(session.estimated_minutes for session in sessions)
        percent = load_percent(scheduled, available)

        return DailyCapacity(
            date=day,
            day_of_week=day.isoweekday(),
            available_minutes=available,
            scheduled_minutes=scheduled,
            remaining_minutes=max(0, available - scheduled),
            utilization_percent=round(percent, 1),
            status=self.status_for(percent),
            time_block_count=len(blocks),
            session_count=len(sessions),
        )

    def weekly_summary(self, child_id: int, week_start: date) -> WeeklyCapacity:
        days = self.analyze(child_id, DateRange.week_of(week_start))
        available = sum(d.available_minutes for d in days)
        scheduled = sum(d.scheduled_minutes for d in days)
        percent = load_percent(scheduled, available)
        return WeeklyCapacity(
            week_start=week_start,
            available_minutes=available,
            scheduled_minutes=scheduled,
            remaining_minutes=max(0, available - scheduled),
            utilization_percent=round(percent, 1),
            status=self.status_for(percent),
            days=days,
        )

    def suggest_balancing(self, child_id: int, week_start: date) -> List[BalancingHint]:
        """Hints for spreading load across a week"""
        days = self.weekly_summary(child_id, week_start).days
        hints = []

        over_days = [d.day_of_week for d in days if d.status == CapacityStatus.OVER]
        light_days = [d.day_of_week for d in days if d.status == CapacityStatus.OK and d.remaining_minutes > 0]
        if over_days and light_days:
            hints.append(BalancingHint(
                kind="balance_load",
                message="Consider moving some sessions from busy days to lighter days",
                from_days=over_days,
                to_days=light_days,
            ))

        active_days = [d for d in days if d.session_count > 0]
        if len(active_days) < MIN_ACTIVE_DAYS:
            unused = [d.day_of_week for d in days if d.session_count == 0 and d.available_minutes > 0]
            if unused:
                hints.append(BalancingHint(
                    kind="utilize_more_days",
                    message="Consider spreading sessions across more days for better balance",
                    to_days=unused,
                ))

        return hints


def _coerce_range(date_range) -> DateRange:
    if isinstance(date_range, DateRange):
        return date_range
    try:
        start, end = date_range
    except (TypeError, ValueError):
        raise ValidationError(f"Malformed date range: {date_range!r}") from None
    return DateRange.of(start, end)


def week_start_for(day: date) -> date:
    """Monday of the week containing day"""
    return day - timedelta(days=day.isoweekday() - 1)
