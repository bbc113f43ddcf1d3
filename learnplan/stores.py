"""
Storage boundary consumed by the scheduling core.

The SQLAlchemy implementations live in ``learnplan.crud``; anything with the
same methods (an API client, an in-memory fake) can be passed instead.
"""
from datetime import date
from typing import List, Optional, Protocol

from learnplan.models import CatchUpSession, LearningSession, Review, TimeBlock
from learnplan.schemas import DateRange


class TimeBlockStore(Protocol):
    def for_child(self, child_id: int) -> List[TimeBlock]: ...


class SessionStore(Protocol):
    def get(self, session_id: int) -> LearningSession: ...

    def for_child(self, child_id: int, date_range: DateRange) -> List[LearningSession]: ...

    def commit(self, session: LearningSession, expected_version: Optional[int]) -> LearningSession:
        """
        Persist the session if its stored version still equals
        ``expected_version`` (None for a new row) and, when it is scheduled,
        its slot does not overlap another occupying session of the child.
        Raises ConflictError otherwise.
        """
        ...


class CatchUpStore(Protocol):
    def get(self, catch_up_id: int) -> CatchUpSession: ...

    def pending(self, child_id: int) -> List[CatchUpSession]: ...

    def for_occurrence(self, session_id: int, missed_date: date) -> Optional[CatchUpSession]: ...

    def save(self, entry: CatchUpSession) -> CatchUpSession: ...


class ReviewStore(Protocol):
    def get(self, review_id: int) -> Review: ...

    def for_flashcard(self, child_id: int, flashcard_id: int) -> Optional[Review]: ...

    def due(self, child_id: int, today: date, limit: int) -> List[Review]: ...

    def new(self, child_id: int, limit: int) -> List[Review]: ...

    def save(self, review: Review) -> Review: ...
