"""
Unlock resolver tests.

Pure functions over (course, snapshot); no database involved.
"""

import random
from datetime import datetime, timedelta

from coursegate.classroom import resolver
from coursegate.schemas import (
    Course,
    LearnerSnapshot,
    Lesson,
    LessonStatus,
    ProgressRecord,
    QuizAttempt,
    Section,
)

from conftest import make_quiz

T0 = datetime(2024, 1, 1, 12, 0, 0)


def completed(*lesson_ids: str) -> dict[str, ProgressRecord]:
    return {
        lesson_id: ProgressRecord(learner_id="u", lesson_id=lesson_id, is_completed=True, completed_at=T0)
        for lesson_id in lesson_ids
    }


def attempt(quiz_id: str, passed: bool, minutes: int = 0, attempt_id: int = None) -> QuizAttempt:
    return QuizAttempt(
        attempt_id=attempt_id,
        learner_id="u",
        quiz_id=quiz_id,
        score=100 if passed else 0,
        passed=passed,
        attempted_at=T0 + timedelta(minutes=minutes),
    )


class TestUnlockState:
    """Test the sequential unlock rule."""

    def test_first_lesson_always_unlocked(self, three_lesson_course):
        state = resolver.get_unlock_state(three_lesson_course, LearnerSnapshot(learner_id="u"))
        assert state == {"a": True, "b": False, "c": False}

    def test_completing_first_unlocks_only_second(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("a"))
        state = resolver.get_unlock_state(three_lesson_course, snapshot)
        assert state == {"a": True, "b": True, "c": False}

    def test_content_without_passed_quiz_keeps_next_locked(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("a", "b"))
        assert not resolver.is_lesson_unlocked(three_lesson_course, snapshot, "c")

    def test_passed_quiz_unlocks_across_sections(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a", "b"),
            attempts=[attempt("qb", passed=True)],
        )
        assert resolver.is_lesson_unlocked(three_lesson_course, snapshot, "c")

    def test_passed_quiz_without_content_is_not_complete(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a"),
            attempts=[attempt("qb", passed=True)],
        )
        assert not resolver.is_lesson_unlocked(three_lesson_course, snapshot, "c")

    def test_unknown_lesson_is_locked(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("a", "b", "c"))
        assert not resolver.is_lesson_unlocked(three_lesson_course, snapshot, "nope")

    def test_progress_for_other_courses_ignored(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("l1", "l2"))
        assert resolver.get_unlock_state(three_lesson_course, snapshot)["b"] is False

    def test_unlock_matches_prefix_rule_for_random_snapshots(self):
        rng = random.Random(1234)
        for _ in range(200):
            n = rng.randint(1, 8)
            lessons = [
                Lesson(
                    id=f"l{i}",
                    title=f"L{i}",
                    position=i,
                    quiz=make_quiz(f"q{i}", n_questions=1) if rng.random() < 0.5 else None,
                )
                for i in range(n)
            ]
            course = Course(id="r", title="R", sections=[Section(id="s", title="S", position=0, lessons=lessons)])

            done = {lesson.id for lesson in lessons if rng.random() < 0.7}
            # timestamps are random, so they often disagree with insertion order
            attempts = [
                attempt(lesson.quiz.id, passed=rng.random() < 0.6, minutes=rng.randint(0, 5), attempt_id=k)
                for k, lesson in enumerate(lessons * 2)
                if lesson.quiz and rng.random() < 0.8
            ]
            newest_passed = {}
            for a in sorted(attempts, key=lambda a: a.attempt_id):
                newest_passed[a.quiz_id] = a.passed
            rng.shuffle(attempts)

            expected = [
                lesson.id in done and (lesson.quiz is None or newest_passed.get(lesson.quiz.id, False))
                for lesson in lessons
            ]
            snapshot = LearnerSnapshot(learner_id="u", progress=completed(*done), attempts=attempts)

            assert resolver.get_completion_state(course, snapshot) == {
                lesson.id: flag for lesson, flag in zip(lessons, expected)
            }
            assert resolver.get_unlock_state(course, snapshot) == {
                lesson.id: all(expected[:i]) for i, lesson in enumerate(lessons)
            }
            assert resolver.is_course_complete(course, snapshot) == all(expected)


class TestMostRecentAttempt:
    """Test that only the most recent attempt decides a quiz."""

    def test_unsaved_attempts_ordered_by_time(self):
        latest = resolver.latest_attempts([
            attempt("qb", passed=True, minutes=5),
            attempt("qb", passed=False, minutes=1),
        ])
        assert latest["qb"].passed

    def test_latest_attempts_tie_broken_by_id(self):
        latest = resolver.latest_attempts([
            attempt("qb", passed=False, attempt_id=2),
            attempt("qb", passed=True, attempt_id=1),
        ])
        assert not latest["qb"].passed

    def test_stored_order_beats_wall_clock(self):
        latest = resolver.latest_attempts([
            attempt("qb", passed=True, minutes=90, attempt_id=1),
            attempt("qb", passed=False, minutes=50, attempt_id=2),
        ])
        assert not latest["qb"].passed

    def test_failed_retake_relocks_downstream(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a", "b", "c"),
            attempts=[
                attempt("qb", passed=True, minutes=0, attempt_id=1),
                attempt("qb", passed=False, minutes=10, attempt_id=2),
            ],
        )
        unlocked = resolver.get_unlock_state(three_lesson_course, snapshot)
        assert unlocked == {"a": True, "b": True, "c": False}
        assert not resolver.is_course_complete(three_lesson_course, snapshot)

    def test_passing_after_failures_completes(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a", "b", "c"),
            attempts=[
                attempt("qb", passed=False, minutes=0),
                attempt("qb", passed=False, minutes=1),
                attempt("qb", passed=True, minutes=2),
            ],
        )
        assert resolver.is_course_complete(three_lesson_course, snapshot)


class TestCourseCompletion:
    """Test course completion and lesson selection helpers."""

    def test_empty_course_never_complete(self):
        course = Course(id="empty", title="Empty")
        assert not resolver.is_course_complete(course, LearnerSnapshot(learner_id="u"))

    def test_first_incomplete_lesson(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("a", "b"))
        assert resolver.first_incomplete_lesson(three_lesson_course, snapshot).id == "b"

    def test_first_incomplete_lesson_none_when_done(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a", "b", "c"),
            attempts=[attempt("qb", passed=True)],
        )
        assert resolver.first_incomplete_lesson(three_lesson_course, snapshot) is None

    def test_next_lesson(self, three_lesson_course):
        assert resolver.next_lesson(three_lesson_course, "b").id == "c"
        assert resolver.next_lesson(three_lesson_course, "c") is None
        assert resolver.next_lesson(three_lesson_course, "nope") is None

    def test_needs_quiz(self, three_lesson_course):
        b = three_lesson_course.get_lesson("b")
        assert not resolver.needs_quiz(b, LearnerSnapshot(learner_id="u"))
        assert resolver.needs_quiz(b, LearnerSnapshot(learner_id="u", progress=completed("b")))


class TestLessonStatuses:
    """Test display statuses."""

    def test_statuses_through_progression(self, three_lesson_course):
        snapshot = LearnerSnapshot(learner_id="u", progress=completed("a", "b"))
        assert resolver.get_lesson_statuses(three_lesson_course, snapshot) == {
            "a": LessonStatus.COMPLETED,
            "b": LessonStatus.AWAITING_QUIZ,
            "c": LessonStatus.LOCKED,
        }

    def test_locked_wins_over_completed(self, three_lesson_course):
        snapshot = LearnerSnapshot(
            learner_id="u",
            progress=completed("a", "b", "c"),
            attempts=[attempt("qb", passed=False)],
        )
        statuses = resolver.get_lesson_statuses(three_lesson_course, snapshot)
        assert statuses["c"] == LessonStatus.LOCKED

    def test_fresh_learner(self, three_lesson_course):
        statuses = resolver.get_lesson_statuses(three_lesson_course, LearnerSnapshot(learner_id="u"))
        assert statuses["a"] == LessonStatus.AVAILABLE
        assert statuses["b"] == LessonStatus.LOCKED
