"""
Progress tracking schemas for CourseGate.

Defines Pydantic models for learner-scoped state including:
- Lesson progress records and quiz attempts
- Certificates
- Snapshots and summaries built from them
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


SubmittedAnswer = Union[str, list[str]]


class LessonStatus(str, Enum):
    """Lesson status for navigation display."""
    LOCKED = "locked"                  # earlier lessons not fully complete
    AVAILABLE = "available"            # unlocked, content not yet completed
    AWAITING_QUIZ = "awaiting_quiz"    # content completed, quiz not passed
    COMPLETED = "completed"            # fully complete


class ProgressRecord(BaseModel):
    learner_id: str
    lesson_id: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None


class QuizAttempt(BaseModel):
    """One scored submission. Append-only, never edited."""
    attempt_id: Optional[int] = None  # assigned by the ledger
    learner_id: str
    quiz_id: str
    answers: dict[str, SubmittedAnswer] = {}
    score: int = Field(..., ge=0, le=100)
    passed: bool
    attempted_at: datetime


class Certificate(BaseModel):
    learner_id: str
    course_id: str
    certificate_number: str
    issued_at: datetime


class LearnerSnapshot(BaseModel):
    """Everything the unlock resolver needs about one learner, read at one point in time."""
    learner_id: str
    progress: dict[str, ProgressRecord] = {}  # keyed by lesson_id
    attempts: list[QuizAttempt] = []


# -----------------------------------------------------------------------------
# Quiz results
# -----------------------------------------------------------------------------

class QuestionFeedback(BaseModel):
    question_id: str
    is_correct: bool
    explanation: Optional[str] = None  # only set for incorrect answers


class QuizResult(BaseModel):
    quiz_id: str
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    feedback: list[QuestionFeedback] = []
    attempt: QuizAttempt


# -----------------------------------------------------------------------------
# Summaries
# -----------------------------------------------------------------------------

class SectionProgress(BaseModel):
    section_id: str
    title: str
    completed: int
    total: int


class CourseProgressSummary(BaseModel):
    learner_id: str
    course_id: str
    total_lessons: int
    completed_lessons: int
    completion_percent: int = 0
    total_duration_minutes: int = 0
    last_activity_at: Optional[datetime] = None
    recommended_lesson_id: Optional[str] = None
    certificate_number: Optional[str] = None
    sections: list[SectionProgress] = []
