"""
Error taxonomy for CourseGate.

Every operation either returns its value or raises one of these:
- ConfigurationError: content that cannot be scored or navigated
- GuardViolation: a rejected transition; nothing was written
- PersistenceFailure: the ledger could not confirm a read or write
"""


class CourseGateError(Exception):
    """Base class for all CourseGate errors."""


class ConfigurationError(CourseGateError, ValueError):
    """Content or settings are invalid (empty quiz, malformed answer key, unknown id)."""


class GuardViolation(CourseGateError):
    """
    A transition was rejected because its precondition does not hold.

    Raised for locked lessons, unfinished courses, quizzes submitted
    outside a quiz step, and lessons whose content was not consumed.
    No state is mutated when this is raised.
    """

    def __init__(self, message: str, lesson_id: str | None = None):
        super().__init__(message)
        self.lesson_id = lesson_id


class PersistenceFailure(CourseGateError):
    """The progress ledger failed to read or write; the operation is safe to retry."""
