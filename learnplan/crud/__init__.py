from sqlalchemy.orm import Session

from learnplan.database import transaction
from learnplan.crud.child import create_child, get_child, require_child, create_subject, create_topic, delete_child
from learnplan.crud.flashcard import create_flashcard, archive_flashcard, all_flashcards, active_flashcards
from learnplan.crud.time_block import create_time_block, get_time_blocks, delete_time_block, SqlTimeBlockStore
from learnplan.crud.learning_session import (
    create_session,
    get_session,
    get_sessions,
    plan_session,
    schedule_session,
    unschedule_session,
    complete_session,
    SqlSessionStore
)
from learnplan.crud.catch_up_session import get_catch_ups, SqlCatchUpStore
from learnplan.crud.review import SqlReviewStore


class SqlStores:
    """All storage adapters bound to one SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db
        self.time_blocks = SqlTimeBlockStore(db)
        self.sessions = SqlSessionStore(db)
        self.catch_ups = SqlCatchUpStore(db)
        self.reviews = SqlReviewStore(db)

    def transaction(self):
        return transaction(self.db)


__all__ = [
    "create_child",
    "get_child",
    "require_child",
    "create_subject",
    "create_topic",
    "delete_child",
    "create_flashcard",
    "archive_flashcard",
    "all_flashcards",
    "active_flashcards",
    "create_time_block",
    "get_time_blocks",
    "delete_time_block",
    "create_session",
    "get_session",
    "get_sessions",
    "plan_session",
    "schedule_session",
    "unschedule_session",
    "complete_session",
    "get_catch_ups",
    "SqlTimeBlockStore",
    "SqlSessionStore",
    "SqlCatchUpStore",
    "SqlReviewStore",
    "SqlStores",
]
