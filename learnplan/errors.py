"""
Error kinds raised by the scheduling core.

Running out of capacity is not an error: the slot search returns an empty
list and redistribution reports the entry as unresolved.
"""


class PlannerError(Exception):
    """Base class for scheduling core errors"""
    retryable = False


class ValidationError(PlannerError):
    """Out-of-range priority, unknown outcome, malformed date range, illegal transition"""


class NotFoundError(PlannerError):
    """Unknown session, review, catch-up or child id"""

    def __init__(self, kind: str, identifier):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class OwnershipError(PlannerError):
    """Entity does not belong to the requesting child"""


class ConflictError(PlannerError):
    """
    A slot confirmed as free was taken (or the row changed) before commit.

    Callers should take a fresh capacity snapshot and try again.
    """
    retryable = True

    def __init__(self, message: str, summary=None):
        super().__init__(message)
        self.summary = summary
