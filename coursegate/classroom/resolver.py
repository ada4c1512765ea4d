"""
Unlock resolver - Pure lock/unlock and completion rules.

Every function here is a function of (course, learner snapshot) only:
no I/O, no hidden state. Re-run after every state change.

Rules:
- The first lesson in flattened order is always unlocked
- Lesson i is unlocked iff lessons 0..i-1 are all fully complete
- A lesson is fully complete when its progress record is completed and,
  if it has a quiz, the most recent attempt at that quiz passed
- A course is complete when every lesson is fully complete
"""

from typing import Iterable, Optional

from coursegate.schemas import (
    Course,
    LearnerSnapshot,
    Lesson,
    LessonStatus,
    QuizAttempt,
)


def _attempt_order(attempt: QuizAttempt) -> tuple:
    # Stored attempts follow ledger insertion order, not the wall clock.
    # Unsaved attempts (no attempt_id) sort before stored ones, by time.
    has_id = attempt.attempt_id is not None
    return (has_id, attempt.attempt_id or 0, attempt.attempted_at)


def latest_attempts(attempts: Iterable[QuizAttempt]) -> dict[str, QuizAttempt]:
    """Most recent attempt per quiz_id."""
    latest: dict[str, QuizAttempt] = {}
    for attempt in attempts:
        current = latest.get(attempt.quiz_id)
        if current is None or _attempt_order(attempt) > _attempt_order(current):
            latest[attempt.quiz_id] = attempt
    return latest


def is_content_complete(lesson: Lesson, snapshot: LearnerSnapshot) -> bool:
    record = snapshot.progress.get(lesson.id)
    return bool(record and record.is_completed)


def is_quiz_passed(lesson: Lesson, latest: dict[str, QuizAttempt]) -> bool:
    """True when the lesson has no quiz or its most recent attempt passed."""
    if not lesson.quiz:
        return True
    attempt = latest.get(lesson.quiz.id)
    return bool(attempt and attempt.passed)


def is_lesson_fully_complete(
    lesson: Lesson,
    snapshot: LearnerSnapshot,
    latest: Optional[dict[str, QuizAttempt]] = None,
) -> bool:
    if latest is None:
        latest = latest_attempts(snapshot.attempts)
    return is_content_complete(lesson, snapshot) and is_quiz_passed(lesson, latest)


def needs_quiz(
    lesson: Lesson,
    snapshot: LearnerSnapshot,
    latest: Optional[dict[str, QuizAttempt]] = None,
) -> bool:
    """Content is done but the lesson's quiz is still unresolved."""
    if latest is None:
        latest = latest_attempts(snapshot.attempts)
    return (
        lesson.has_quiz
        and is_content_complete(lesson, snapshot)
        and not is_quiz_passed(lesson, latest)
    )


def get_completion_state(course: Course, snapshot: LearnerSnapshot) -> dict[str, bool]:
    """Fully-complete flag for every lesson, in flattened order."""
    latest = latest_attempts(snapshot.attempts)
    return {
        lesson.id: is_lesson_fully_complete(lesson, snapshot, latest)
        for lesson in course.flattened_lessons()
    }


def get_unlock_state(course: Course, snapshot: LearnerSnapshot) -> dict[str, bool]:
    """
    Compute the unlocked flag of every lesson in the course.

    Returns:
        Dict of lesson_id -> unlocked, in flattened order
    """
    result = {}
    all_previous_complete = True
    for lesson_id, complete in get_completion_state(course, snapshot).items():
        result[lesson_id] = all_previous_complete
        all_previous_complete = all_previous_complete and complete
    return result


def is_lesson_unlocked(course: Course, snapshot: LearnerSnapshot, lesson_id: str) -> bool:
    """Unknown lesson ids are never unlocked."""
    return get_unlock_state(course, snapshot).get(lesson_id, False)


def is_course_complete(course: Course, snapshot: LearnerSnapshot) -> bool:
    """An empty course is never complete."""
    completion = get_completion_state(course, snapshot)
    return bool(completion) and all(completion.values())


def first_incomplete_lesson(course: Course, snapshot: LearnerSnapshot) -> Optional[Lesson]:
    latest = latest_attempts(snapshot.attempts)
    for lesson in course.flattened_lessons():
        if not is_lesson_fully_complete(lesson, snapshot, latest):
            return lesson
    return None


def next_lesson(course: Course, lesson_id: str) -> Optional[Lesson]:
    """The lesson after lesson_id in flattened order, or None if it is the last."""
    lessons = course.flattened_lessons()
    for idx, lesson in enumerate(lessons):
        if lesson.id == lesson_id:
            return lessons[idx + 1] if idx + 1 < len(lessons) else None
    return None


def get_lesson_statuses(course: Course, snapshot: LearnerSnapshot) -> dict[str, LessonStatus]:
    """Display status of every lesson, derived from the unlock and completion rules."""
    latest = latest_attempts(snapshot.attempts)
    unlocked = get_unlock_state(course, snapshot)
    statuses = {}
    for lesson in course.flattened_lessons():
        # Locked wins over completed: a failed retake upstream re-locks finished lessons
        if not unlocked[lesson.id]:
            statuses[lesson.id] = LessonStatus.LOCKED
        elif is_lesson_fully_complete(lesson, snapshot, latest):
            statuses[lesson.id] = LessonStatus.COMPLETED
        elif needs_quiz(lesson, snapshot, latest):
            statuses[lesson.id] = LessonStatus.AWAITING_QUIZ
        else:
            statuses[lesson.id] = LessonStatus.AVAILABLE
    return statuses
