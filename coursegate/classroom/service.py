"""
CourseService - The logical operations exposed to a presentation layer.

Provides:
- get_unlock_state / get_lesson_statuses
- mark_lesson_complete (guarded by the unlock rules)
- submit_quiz (guarded, delegates scoring to QuizEngine)
- finish_course (delegates to CertificateIssuer)
- progress summaries, certificate lookup, player sessions

Values are returned; errors are raised as CourseGateError subclasses.
"""

import logging
from typing import Callable, Mapping, Optional

from coursegate.classroom import resolver
from coursegate.classroom.certification import CertificateIssuer
from coursegate.classroom.consumption import ConsumptionSignal
from coursegate.classroom.loader import CourseLoader
from coursegate.classroom.navigator import PlayerSession
from coursegate.classroom.progress import ProgressLedger
from coursegate.classroom.quiz import QuizEngine
from coursegate.config import Settings
from coursegate.errors import ConfigurationError, GuardViolation
from coursegate.schemas import (
    Certificate,
    Course,
    CourseProgressSummary,
    LearnerSnapshot,
    Lesson,
    LessonStatus,
    ProgressRecord,
    QuizResult,
    SectionProgress,
    SubmittedAnswer,
)

logger = logging.getLogger(__name__)


def _percent(part: int, total: int) -> int:
    """Half-up rounded percentage, 0 for an empty total."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


class CourseService:
    """
    Progression, quiz gating and certification for every learner.

    Holds no learner state of its own: every call reads a fresh
    snapshot from the ledger.
    """

    def __init__(self, loader: CourseLoader, ledger: ProgressLedger, settings: Optional[Settings] = None):
        """
        Args:
            loader: Content graph provider
            ledger: Progress ledger
            settings: Certificate and consumption settings (defaults if omitted)
        """
        self.loader = loader
        self.ledger = ledger
        self.settings = settings or Settings()
        self.quiz_engine = QuizEngine(ledger)
        self.issuer = CertificateIssuer(
            ledger,
            prefix=self.settings.certificate_prefix,
            retries=self.settings.certificate_retries,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CourseService":
        return cls(
            CourseLoader(settings.content_db),
            ProgressLedger(settings.progress_db, timeout=settings.db_timeout_seconds),
            settings,
        )

    # -------------------------------------------------------------------------
    # Content lookups
    # -------------------------------------------------------------------------

    def get_course(self, course_id: str) -> Course:
        course = self.loader.get_course(course_id)
        if course is None:
            raise ConfigurationError(f"Unknown course: {course_id}")
        return course

    def _course_for_lesson(self, lesson_id: str) -> tuple[Course, Lesson]:
        course_id = self.loader.get_course_id_for_lesson(lesson_id)
        if course_id is None:
            raise ConfigurationError(f"Unknown lesson: {lesson_id}")
        course = self.get_course(course_id)
        return course, course.get_lesson(lesson_id)

    def _course_for_quiz(self, quiz_id: str) -> tuple[Course, Lesson]:
        course_id = self.loader.get_course_id_for_quiz(quiz_id)
        if course_id is None:
            raise ConfigurationError(f"Unknown quiz: {quiz_id}")
        course = self.get_course(course_id)
        return course, course.get_lesson_for_quiz(quiz_id)

    def snapshot(self, learner_id: str, course: Course) -> LearnerSnapshot:
        return self.ledger.get_snapshot(learner_id, course)

    # -------------------------------------------------------------------------
    # Unlock state
    # -------------------------------------------------------------------------

    def get_unlock_state(self, learner_id: str, course_id: str) -> dict[str, bool]:
        course = self.get_course(course_id)
        return resolver.get_unlock_state(course, self.snapshot(learner_id, course))

    def get_lesson_statuses(self, learner_id: str, course_id: str) -> dict[str, LessonStatus]:
        course = self.get_course(course_id)
        return resolver.get_lesson_statuses(course, self.snapshot(learner_id, course))

    def _require_unlocked(self, learner_id: str, course: Course, lesson: Lesson, snapshot: LearnerSnapshot):
        if not resolver.is_lesson_unlocked(course, snapshot, lesson.id):
            logger.warning(f"Learner {learner_id} tried to use locked lesson {lesson.id}")
            raise GuardViolation(f"Lesson {lesson.id} is locked", lesson_id=lesson.id)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def mark_lesson_complete(
        self,
        learner_id: str,
        lesson_id: str,
        signal: Optional[ConsumptionSignal] = None,
    ) -> ProgressRecord:
        """
        Record that the learner finished a lesson's content.

        Args:
            signal: Consumption signal to check first; omit when the caller
                has already established consumption

        Raises:
            ConfigurationError: Unknown lesson
            GuardViolation: Lesson locked or content not consumed
            PersistenceFailure: The progress record was not written
        """
        course, lesson = self._course_for_lesson(lesson_id)
        self._require_unlocked(learner_id, course, lesson, self.snapshot(learner_id, course))

        if signal is not None and not signal.has_consumed(lesson):
            raise GuardViolation(f"Lesson {lesson_id} content has not been consumed yet", lesson_id=lesson_id)

        record = self.ledger.mark_lesson_complete(learner_id, lesson_id)
        logger.info(f"Learner {learner_id} completed lesson {lesson_id} in course {course.id}")
        return record

    def submit_quiz(
        self,
        learner_id: str,
        quiz_id: str,
        answers: Mapping[str, Optional[SubmittedAnswer]],
    ) -> QuizResult:
        """
        Score and record a quiz submission.

        The quiz's lesson must be unlocked and its content completed.

        Raises:
            ConfigurationError: Unknown quiz, no questions or malformed answer key
            GuardViolation: Lesson locked or its content not completed
            PersistenceFailure: The attempt was not written
        """
        course, lesson = self._course_for_quiz(quiz_id)
        snapshot = self.snapshot(learner_id, course)
        self._require_unlocked(learner_id, course, lesson, snapshot)
        if not resolver.is_content_complete(lesson, snapshot):
            raise GuardViolation(
                f"Lesson {lesson.id} must be completed before its quiz",
                lesson_id=lesson.id,
            )
        return self.quiz_engine.submit(learner_id, lesson.quiz, answers)

    def finish_course(self, learner_id: str, course_id: str) -> Certificate:
        """
        Issue the course certificate, or return the existing one.

        Raises:
            GuardViolation: Course not complete
            PersistenceFailure: Write not confirmed; safe to call again
        """
        return self.issuer.issue(learner_id, self.get_course(course_id))

    # -------------------------------------------------------------------------
    # Certificates
    # -------------------------------------------------------------------------

    def verify_certificate(self, certificate_number: str) -> Optional[Certificate]:
        return self.ledger.get_certificate_by_number(certificate_number)

    def list_certificates(self, learner_id: str) -> list[Certificate]:
        return self.ledger.list_certificates(learner_id)

    # -------------------------------------------------------------------------
    # Progress Summary
    # -------------------------------------------------------------------------

    def get_progress_summary(self, learner_id: str, course_id: str) -> CourseProgressSummary:
        course = self.get_course(course_id)
        snapshot = self.snapshot(learner_id, course)
        completion = resolver.get_completion_state(course, snapshot)
        lessons = course.flattened_lessons()

        sections = []
        for section in course.ordered_sections():
            section_lessons = section.ordered_lessons()
            sections.append(SectionProgress(
                section_id=section.id,
                title=section.title,
                completed=sum(1 for lesson in section_lessons if completion[lesson.id]),
                total=len(section_lessons),
            ))

        activity = [r.completed_at for r in snapshot.progress.values() if r.completed_at]
        activity += [a.attempted_at for a in snapshot.attempts]

        pending = resolver.first_incomplete_lesson(course, snapshot)
        certificate = self.ledger.get_certificate(learner_id, course_id)
        completed = sum(1 for done in completion.values() if done)

        return CourseProgressSummary(
            learner_id=learner_id,
            course_id=course_id,
            total_lessons=len(lessons),
            completed_lessons=completed,
            completion_percent=_percent(completed, len(lessons)),
            total_duration_minutes=sum(lesson.duration_minutes or 0 for lesson in lessons),
            last_activity_at=max(activity) if activity else None,
            recommended_lesson_id=pending.id if pending else None,
            certificate_number=certificate.certificate_number if certificate else None,
            sections=sections,
        )

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def open_session(
        self,
        learner_id: str,
        course_id: str,
        lesson_id: Optional[str] = None,
        signal_factory: Optional[Callable[[Lesson], ConsumptionSignal]] = None,
    ) -> PlayerSession:
        """Start a player session at the lesson in progress (or at lesson_id)."""
        session = PlayerSession(self, learner_id, self.get_course(course_id), signal_factory=signal_factory)
        session.start(lesson_id)
        return session
