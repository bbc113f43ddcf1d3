from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import date, time, timedelta
from learnplan.errors import ValidationError
from learnplan.models.enums import CapacityStatus, CommitmentType

MAX_RANGE_DAYS = 366

class DateRange(BaseModel):
    """Inclusive calendar date range"""
    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self):
        if self.end < self.start:
            raise ValueError(f"end {self.end} is before start {self.start}")
        if (self.end - self.start).days >= MAX_RANGE_DAYS:
            raise ValueError(f"date range spans more than {MAX_RANGE_DAYS} days")
        return self

    @classmethod
    def of(cls, start: date, end: date) -> "DateRange":
        """Build a range, raising the core ValidationError when malformed"""
        try:
            return cls(start=start, end=end)
        except ValueError as e:
            raise ValidationError(f"Malformed date range: {e}") from e

    @classmethod
    def week_of(cls, week_start: date) -> "DateRange":
        return cls.of(week_start, week_start + timedelta(days=6))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


class DailyCapacity(BaseModel):
    """Capacity figures for one child on one calendar date"""
    date: date
    day_of_week: int
    available_minutes: int
    scheduled_minutes: int
    remaining_minutes: int
    utilization_percent: float
    status: CapacityStatus
    time_block_count: int
    session_count: int


class WeeklyCapacity(BaseModel):
    """Seven daily records rolled up"""
    week_start: date
    available_minutes: int
    scheduled_minutes: int
    remaining_minutes: int
    utilization_percent: float
    status: CapacityStatus
    days: List[DailyCapacity]


class BalancingHint(BaseModel):
    """Suggestion for spreading a week's load"""
    kind: str = Field(description="balance_load or utilize_more_days")
    message: str
    from_days: List[int] = Field(default_factory=list)
    to_days: List[int] = Field(default_factory=list)


class SlotCandidate(BaseModel):
    """A free interval a session could be moved into"""
    date: date
    day_of_week: int
    day_name: str
    start_time: time
    end_time: time
    time_block_id: Optional[int] = None
    capacity_used: float
    days_from_original: int
    difficulty: int
    recommended: bool = False


class RedistributionDetail(BaseModel):
    """Outcome for one catch-up entry inside a redistribute call"""
    catch_up_id: int
    priority: int
    resolved: bool
    new_session_id: Optional[int] = None
    slot: Optional[SlotCandidate] = None


class RescheduledSession(BaseModel):
    """A flexible session moved off a day"""
    session_id: int
    from_date: date
    slot: SlotCandidate


class RedistributionSummary(BaseModel):
    reassigned_count: int = 0
    unresolved_count: int = 0
    details: List[RedistributionDetail] = Field(default_factory=list)


class ChildCreate(BaseModel):
    """Schema for creating a child profile"""
    name: str
    grade: Optional[str] = None


class TimeBlockCreate(BaseModel):
    """Schema for a weekly availability window"""
    child_id: int
    day_of_week: int = Field(ge=1, le=7)
    start_time: time
    end_time: time
    label: str = ""
    commitment_type: CommitmentType = CommitmentType.PREFERRED

    @model_validator(mode="after")
    def _check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionCreate(BaseModel):
    """Schema for a new learning session (starts in the backlog)"""
    child_id: int
    topic_id: int
    estimated_minutes: int = Field(gt=0)
    commitment_type: CommitmentType = CommitmentType.PREFERRED
    notes: Optional[str] = None
