from sqlalchemy import Column, Integer, String, Time, Enum, ForeignKey
from sqlalchemy.orm import relationship
from learnplan.database import Base
from learnplan.models.enums import CommitmentType, DAY_NAMES
from learnplan.timeutil import minutes_between

class TimeBlock(Base):
    """Weekly window of availability for a child (day_of_week 1=Monday .. 7=Sunday)"""
    __tablename__ = "time_blocks"

    id = Column(Integer, primary_key=True, index=True)
    child_id = Column(Integer, ForeignKey("children.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    label = Column(String, nullable=False, default="")
    commitment_type = Column(Enum(CommitmentType), default=CommitmentType.PREFERRED, nullable=False)

    child = relationship("Child", back_populates="time_blocks")

    def __init__(self, **kwargs):
        kwargs.setdefault("label", "")
        kwargs.setdefault("commitment_type", CommitmentType.PREFERRED)
        super().__init__(**kwargs)

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_time, self.end_time)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def overlaps_with(self, other: "TimeBlock") -> bool:
        """Same day and the two time ranges intersect"""
        if self.day_of_week != other.day_of_week:
            return False
        return self.start_time < other.end_time and self.end_time > other.start_time
