"""
CourseGate Classroom - Runtime components for gating and certifying learners.

This module provides:
- CourseLoader: Load courses from content.db
- ProgressLedger: Durable progress, quiz attempts and certificates
- resolver: Pure unlock and completion rules
- QuizEngine: Score submissions and record attempts
- CertificateIssuer: One-time completion certificates
- PlayerSession: Course player state machine
- CourseService: Operations exposed to a presentation layer
"""

from .loader import (
    CourseLoader,
    load_course_file,
    write_course,
)

from .progress import (
    ProgressLedger,
    DEFAULT_PROGRESS_DIR,
    DEFAULT_PROGRESS_DB,
)

from .resolver import (
    get_unlock_state,
    get_completion_state,
    get_lesson_statuses,
    is_lesson_fully_complete,
    is_lesson_unlocked,
    is_course_complete,
    first_incomplete_lesson,
    latest_attempts,
)

from .quiz import (
    QuizEngine,
    GradedQuiz,
    normalize_correct_answer,
    is_answer_correct,
    compute_score,
    grade_quiz,
)

from .certification import (
    CertificateIssuer,
    generate_certificate_number,
)

from .consumption import (
    ConsumptionSignal,
    TextContentSignal,
    TrustedProviderSignal,
    ReportedProgressSignal,
    ElapsedTimeSignal,
    signal_for_lesson,
)

from .navigator import (
    PlayerSession,
    SessionState,
    Viewing,
    TakingQuiz,
    Locked,
    ReadyToFinish,
    Completed,
    Transition,
    NavigationLesson,
    NavigationSection,
)

from .service import CourseService

__all__ = [
    # Loader
    "CourseLoader",
    "load_course_file",
    "write_course",
    # Progress
    "ProgressLedger",
    "DEFAULT_PROGRESS_DIR",
    "DEFAULT_PROGRESS_DB",
    # Resolver
    "get_unlock_state",
    "get_completion_state",
    "get_lesson_statuses",
    "is_lesson_fully_complete",
    "is_lesson_unlocked",
    "is_course_complete",
    "first_incomplete_lesson",
    "latest_attempts",
    # Quiz
    "QuizEngine",
    "GradedQuiz",
    "normalize_correct_answer",
    "is_answer_correct",
    "compute_score",
    "grade_quiz",
    # Certification
    "CertificateIssuer",
    "generate_certificate_number",
    # Consumption
    "ConsumptionSignal",
    "TextContentSignal",
    "TrustedProviderSignal",
    "ReportedProgressSignal",
    "ElapsedTimeSignal",
    "signal_for_lesson",
    # Navigator
    "PlayerSession",
    "SessionState",
    "Viewing",
    "TakingQuiz",
    "Locked",
    "ReadyToFinish",
    "Completed",
    "Transition",
    "NavigationLesson",
    "NavigationSection",
    # Service
    "CourseService",
]
