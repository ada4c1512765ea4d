"""Shared fixtures: small courses compiled into a temporary content.db."""

import pytest

from coursegate.classroom import CourseLoader, CourseService, ProgressLedger, write_course
from coursegate.config import Settings
from coursegate.schemas import Course, Lesson, Question, QuestionType, Quiz, Section


def make_quiz(quiz_id: str, n_questions: int = 5, passing_score: int = 70) -> Quiz:
    """Single-choice quiz whose correct answer is always "A"."""
    return Quiz(
        id=quiz_id,
        title=f"Quiz {quiz_id}",
        passing_score=passing_score,
        questions=[
            Question(
                id=f"{quiz_id}-q{i}",
                question=f"Question {i}?",
                question_type=QuestionType.SINGLE_CHOICE,
                options=["A", "B", "C"],
                correct_answer="A",
                explanation=f"The answer to {i} is A.",
                position=i,
            )
            for i in range(n_questions)
        ],
    )


def answers_with(quiz: Quiz, n_correct: int) -> dict[str, str]:
    """Answers with exactly n_correct right, the rest wrong."""
    return {
        q.id: "A" if i < n_correct else "B"
        for i, q in enumerate(quiz.ordered_questions())
    }


@pytest.fixture
def two_lesson_course() -> Course:
    """Lesson 1 with a 5-question quiz (pass mark 70), lesson 2 without a quiz."""
    return Course(
        id="two-step",
        title="Two Step",
        sections=[
            Section(
                id="two-step-s1",
                title="Only section",
                position=0,
                lessons=[
                    Lesson(id="l1", title="First", position=0, duration_minutes=5,
                           content="Read me", quiz=make_quiz("q1")),
                    Lesson(id="l2", title="Second", position=1, duration_minutes=7,
                           content="Then me"),
                ],
            )
        ],
    )


@pytest.fixture
def three_lesson_course() -> Course:
    """Two sections: a, b (with quiz) | c."""
    return Course(
        id="three-step",
        title="Three Step",
        sections=[
            Section(
                id="three-step-s1",
                title="Part one",
                position=0,
                lessons=[
                    Lesson(id="a", title="A", position=0, content="a"),
                    Lesson(id="b", title="B", position=1, content="b",
                           quiz=make_quiz("qb", n_questions=2, passing_score=50)),
                ],
            ),
            Section(
                id="three-step-s2",
                title="Part two",
                position=1,
                lessons=[Lesson(id="c", title="C", position=0, content="c")],
            ),
        ],
    )


@pytest.fixture
def content_db(tmp_path, two_lesson_course, three_lesson_course):
    db_path = tmp_path / "content.db"
    write_course(two_lesson_course, db_path)
    write_course(three_lesson_course, db_path)
    return db_path


@pytest.fixture
def loader(content_db) -> CourseLoader:
    return CourseLoader(content_db)


@pytest.fixture
def ledger(tmp_path) -> ProgressLedger:
    return ProgressLedger(tmp_path / "progress.db")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(content_db=tmp_path / "content.db", progress_db=tmp_path / "progress.db")


@pytest.fixture
def service(loader, ledger, settings) -> CourseService:
    return CourseService(loader, ledger, settings)
