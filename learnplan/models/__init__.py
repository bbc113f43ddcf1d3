from learnplan.models.child import Child, Subject
from learnplan.models.topic import Topic, Flashcard
from learnplan.models.time_block import TimeBlock
from learnplan.models.learning_session import LearningSession
from learnplan.models.catch_up_session import CatchUpSession
from learnplan.models.review import Review

__all__ = [
    "Child",
    "Subject",
    "Topic",
    "Flashcard",
    "TimeBlock",
    "LearningSession",
    "CatchUpSession",
    "Review"
]
