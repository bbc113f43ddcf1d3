import enum


class SessionStatus(str, enum.Enum):
    BACKLOG = "backlog"
    PLANNED = "planned"
    SCHEDULED = "scheduled"
    DONE = "done"


class CommitmentType(str, enum.Enum):
    FIXED = "fixed"
    PREFERRED = "preferred"
    FLEXIBLE = "flexible"


class CatchUpStatus(str, enum.Enum):
    PENDING = "pending"
    REASSIGNED = "reassigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReviewStatus(str, enum.Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


class CapacityStatus(str, enum.Enum):
    OK = "ok"
    WARNING = "warning"
    OVER = "over"


# Statuses whose minutes count against a day's capacity
OCCUPYING_STATUSES = (SessionStatus.SCHEDULED, SessionStatus.DONE)

# Legal forward moves of the session lifecycle; unschedule and the catch-up
# reset to backlog are separate explicit transitions.
SESSION_TRANSITIONS = {
    SessionStatus.BACKLOG: {SessionStatus.PLANNED},
    SessionStatus.PLANNED: {SessionStatus.SCHEDULED},
    SessionStatus.SCHEDULED: {SessionStatus.DONE},
    SessionStatus.DONE: set(),
}

# Catch-up priority before escalation (1 = most urgent)
BASE_CATCH_UP_PRIORITY = {
    CommitmentType.FIXED: 1,
    CommitmentType.PREFERRED: 2,
    CommitmentType.FLEXIBLE: 3,
}

# Extra slot-search difficulty for moving a session of each commitment type
RESCHEDULE_PENALTY = {
    CommitmentType.FIXED: 10,
    CommitmentType.PREFERRED: 3,
    CommitmentType.FLEXIBLE: 1,
}

PRIORITY_LABELS = {
    1: "Critical",
    2: "High",
    3: "Medium",
    4: "Low",
    5: "Later",
}

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}
