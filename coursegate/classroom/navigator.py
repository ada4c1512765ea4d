"""
PlayerSession - Per-learner course player state machine.

States:
- Viewing(lesson)             showing a lesson's content
- TakingQuiz(lesson, quiz)    content done, quiz unresolved
- Locked(lesson)              a locked lesson was requested at start
- ReadyToFinish(lesson)       every lesson fully complete, no certificate yet
- Completed(certificate)      certificate issued

Transitions are triggered by mark_lesson_complete, submit_quiz,
select_lesson, advance and finish_course. Lock, pass/fail and
completion decisions are delegated to the resolver and to
CourseService; the session only holds which lesson is on screen and
the draft answers of the quiz in progress. Abandoning a session
writes nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from coursegate.classroom import resolver
from coursegate.classroom.consumption import ConsumptionSignal, signal_for_lesson
from coursegate.errors import ConfigurationError, GuardViolation
from coursegate.schemas import (
    Certificate,
    Course,
    LearnerSnapshot,
    Lesson,
    LessonStatus,
    ProgressRecord,
    QuizResult,
    Section,
    SubmittedAnswer,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# States
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Viewing:
    lesson_id: str


@dataclass(frozen=True)
class TakingQuiz:
    lesson_id: str
    quiz_id: str


@dataclass(frozen=True)
class Locked:
    lesson_id: str


@dataclass(frozen=True)
class ReadyToFinish:
    lesson_id: str


@dataclass(frozen=True)
class Completed:
    certificate: Certificate


SessionState = Union[Viewing, TakingQuiz, Locked, ReadyToFinish, Completed]


@dataclass
class Transition:
    """Result of one session event."""
    previous: Optional[SessionState]
    state: Optional[SessionState]
    rejected: bool = False
    reason: Optional[str] = None
    needs_confirmation: bool = False  # quiz passed; show a brief confirmation before moving on
    progress: Optional[ProgressRecord] = None
    quiz_result: Optional[QuizResult] = None


@dataclass
class NavigationLesson:
    """Lesson with navigation metadata."""
    lesson: Lesson
    status: LessonStatus
    is_current: bool


@dataclass
class NavigationSection:
    """Section with lessons and navigation metadata."""
    section: Section
    lessons: list[NavigationLesson] = field(default_factory=list)
    completed_count: int = 0
    total_count: int = 0


class PlayerSession:
    """
    One learner working through one course.

    Combines the course (content) with CourseService (learner state and
    guarded writes) to drive the player.
    """

    def __init__(
        self,
        service,
        learner_id: str,
        course: Course,
        signal_factory: Optional[Callable[[Lesson], ConsumptionSignal]] = None,
    ):
        """
        Initialize a session. Call start() before any other event.

        Args:
            service: CourseService performing reads and guarded writes
            learner_id: Learner identifier
            course: Course being played
            signal_factory: Builds the consumption signal for a lesson
                (default: chosen by the lesson's media provider)
        """
        if not course.flattened_lessons():
            raise ConfigurationError(f"Course {course.id} has no lessons")

        self.service = service
        self.learner_id = learner_id
        self.course = course
        self._signal_factory = signal_factory or (
            lambda lesson: signal_for_lesson(lesson, service.settings)
        )
        self._signals: dict[str, ConsumptionSignal] = {}
        self.state: Optional[SessionState] = None
        self.draft_answers: dict[str, SubmittedAnswer] = {}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _snapshot(self) -> LearnerSnapshot:
        return self.service.snapshot(self.learner_id, self.course)

    def _lesson(self, lesson_id: str) -> Lesson:
        lesson = self.course.get_lesson(lesson_id)
        if lesson is None:
            raise ConfigurationError(f"Lesson {lesson_id} is not part of course {self.course.id}")
        return lesson

    @property
    def current_lesson(self) -> Optional[Lesson]:
        lesson_id = getattr(self.state, "lesson_id", None)
        return self.course.get_lesson(lesson_id) if lesson_id else None

    def consumption_signal(self, lesson_id: str) -> ConsumptionSignal:
        """The signal for a lesson; the player reports playback progress to it."""
        if lesson_id not in self._signals:
            self._signals[lesson_id] = self._signal_factory(self._lesson(lesson_id))
        return self._signals[lesson_id]

    def _show_lesson(self, lesson: Lesson, snapshot: LearnerSnapshot) -> SessionState:
        """State for an unlocked lesson: its quiz if content is done and quiz unresolved."""
        if resolver.needs_quiz(lesson, snapshot):
            return TakingQuiz(lesson.id, lesson.quiz.id)

        signal = self.consumption_signal(lesson.id)
        start_timer = getattr(signal, "start", None)
        if callable(start_timer):
            start_timer(lesson.id)
        return Viewing(lesson.id)

    def _after_lesson_done(self, lesson: Lesson, snapshot: LearnerSnapshot) -> SessionState:
        """Where to go once a lesson's content (and quiz, if any) is settled."""
        if resolver.needs_quiz(lesson, snapshot):
            return TakingQuiz(lesson.id, lesson.quiz.id)

        following = resolver.next_lesson(self.course, lesson.id)
        if following is None:
            if resolver.is_course_complete(self.course, snapshot):
                return ReadyToFinish(lesson.id)
            return Viewing(lesson.id)
        if resolver.is_lesson_unlocked(self.course, snapshot, following.id):
            return self._show_lesson(following, snapshot)
        return Viewing(lesson.id)

    def _move(self, new_state: SessionState, **details) -> Transition:
        previous, self.state = self.state, new_state
        if previous != new_state:
            logger.info(f"Session {self.learner_id}/{self.course.id}: {previous} -> {new_state}")
        return Transition(previous=previous, state=new_state, **details)

    def _reject(self, reason: str) -> Transition:
        logger.warning(f"Session {self.learner_id}/{self.course.id}: rejected ({reason})")
        return Transition(previous=self.state, state=self.state, rejected=True, reason=reason)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def start(self, lesson_id: Optional[str] = None) -> Transition:
        """
        Select the lesson to present.

        With lesson_id, open that lesson (Locked if it is locked).
        Otherwise open the first lesson that is not fully complete; when
        every lesson is complete, the last lesson ready to finish (or
        Completed if the certificate already exists).
        """
        snapshot = self._snapshot()

        if lesson_id is not None:
            lesson = self._lesson(lesson_id)
            if not resolver.is_lesson_unlocked(self.course, snapshot, lesson_id):
                return self._move(Locked(lesson_id))
            return self._move(self._show_lesson(lesson, snapshot))

        pending = resolver.first_incomplete_lesson(self.course, snapshot)
        if pending is not None:
            return self._move(self._show_lesson(pending, snapshot))

        certificate = self.service.issuer.get_existing(self.learner_id, self.course.id)
        if certificate is not None:
            return self._move(Completed(certificate))
        return self._move(ReadyToFinish(self.course.flattened_lessons()[-1].id))

    def mark_lesson_complete(self) -> Transition:
        """
        Complete the current lesson's content.

        Raises:
            GuardViolation: No lesson on screen, lesson locked, or not consumed
            PersistenceFailure: Not written; the state is unchanged
        """
        lesson = self.current_lesson
        if lesson is None or isinstance(self.state, Locked):
            raise GuardViolation("No unlocked lesson is open", lesson_id=getattr(self.state, "lesson_id", None))

        record = self.service.mark_lesson_complete(
            self.learner_id,
            lesson.id,
            signal=self.consumption_signal(lesson.id),
        )
        snapshot = self._snapshot()
        return self._move(self._after_lesson_done(lesson, snapshot), progress=record)

    def record_answer(self, question_id: str, answer: Optional[SubmittedAnswer]):
        """Keep an in-progress answer in memory; nothing is persisted until submit_quiz."""
        if answer is None or len(answer) == 0:
            self.draft_answers.pop(question_id, None)
        else:
            self.draft_answers[question_id] = answer

    def clear_answers(self):
        self.draft_answers = {}

    def submit_quiz(self, answers: Optional[dict[str, SubmittedAnswer]] = None) -> Transition:
        """
        Submit the quiz on screen (draft answers unless answers is given).

        Pass: next lesson or ready to finish, flagged for confirmation.
        Fail: stay on the quiz with draft answers cleared for a retake.

        Raises:
            GuardViolation: Not on a quiz
            ConfigurationError: Quiz cannot be scored
            PersistenceFailure: Attempt not written; the state is unchanged
        """
        if not isinstance(self.state, TakingQuiz):
            raise GuardViolation("No quiz is open", lesson_id=getattr(self.state, "lesson_id", None))

        lesson = self._lesson(self.state.lesson_id)
        result = self.service.submit_quiz(
            self.learner_id,
            self.state.quiz_id,
            self.draft_answers if answers is None else answers,
        )
        self.clear_answers()

        if not result.passed:
            return self._move(self.state, quiz_result=result)

        snapshot = self._snapshot()
        return self._move(
            self._after_lesson_done(lesson, snapshot),
            quiz_result=result,
            needs_confirmation=True,
        )

    def select_lesson(self, lesson_id: str) -> Transition:
        """Open another lesson; rejected (state unchanged) when it is locked."""
        if self.course.get_lesson(lesson_id) is None:
            return self._reject(f"lesson {lesson_id} is not part of course {self.course.id}")

        snapshot = self._snapshot()
        if not resolver.is_lesson_unlocked(self.course, snapshot, lesson_id):
            return self._reject(f"lesson {lesson_id} is locked")

        self.clear_answers()
        return self._move(self._show_lesson(self._lesson(lesson_id), snapshot))

    def advance(self) -> Transition:
        """Go to the next lesson in order; rejected when it is locked or there is none."""
        lesson = self.current_lesson
        if lesson is None:
            return self._reject("no lesson is open")

        following = resolver.next_lesson(self.course, lesson.id)
        if following is None:
            return self._reject(f"lesson {lesson.id} is the last lesson")
        return self.select_lesson(following.id)

    def finish_course(self) -> Transition:
        """
        Issue the certificate and enter Completed.

        Raises:
            GuardViolation: Course not complete
            PersistenceFailure: Not confirmed; the state is unchanged
        """
        certificate = self.service.finish_course(self.learner_id, self.course.id)
        return self._move(Completed(certificate))

    # -------------------------------------------------------------------------
    # Navigation Tree
    # -------------------------------------------------------------------------

    def navigation_tree(self) -> list[NavigationSection]:
        """Sections with each lesson's status and whether it is on screen."""
        snapshot = self._snapshot()
        statuses = resolver.get_lesson_statuses(self.course, snapshot)
        current_id = getattr(self.state, "lesson_id", None)

        tree = []
        for section in self.course.ordered_sections():
            lessons = [
                NavigationLesson(
                    lesson=lesson,
                    status=statuses[lesson.id],
                    is_current=lesson.id == current_id,
                )
                for lesson in section.ordered_lessons()
            ]
            tree.append(NavigationSection(
                section=section,
                lessons=lessons,
                completed_count=sum(1 for nl in lessons if nl.status == LessonStatus.COMPLETED),
                total_count=len(lessons),
            ))
        return tree

    def get_status_indicator(self, lesson_id: str) -> str:
        """
        Get status indicator for sidebar display.

        Returns:
            → for current
            ✓ for completed
            ○ for available (or awaiting its quiz)
            ◌ for locked
        """
        status = resolver.get_lesson_statuses(self.course, self._snapshot()).get(lesson_id, LessonStatus.LOCKED)
        if lesson_id == getattr(self.state, "lesson_id", None) and status != LessonStatus.LOCKED:
            return "→"
        if status == LessonStatus.COMPLETED:
            return "✓"
        if status in (LessonStatus.AVAILABLE, LessonStatus.AWAITING_QUIZ):
            return "○"
        return "◌"
