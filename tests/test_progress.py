"""
ProgressLedger tests.

Each test gets its own progress.db under tmp_path.
"""

import pytest
from datetime import datetime

from coursegate.classroom import ProgressLedger
from coursegate.errors import PersistenceFailure
from coursegate.schemas import QuizAttempt


def make_attempt(learner_id="alice", quiz_id="q1", score=80, passed=True, attempted_at=None) -> QuizAttempt:
    return QuizAttempt(
        learner_id=learner_id,
        quiz_id=quiz_id,
        answers={"q1-q0": "A", "q1-q1": ["A", "B"]},
        score=score,
        passed=passed,
        attempted_at=attempted_at or datetime.now(),
    )


class TestDatabaseSetup:
    """Test database creation."""

    def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "progress.db"
        ProgressLedger(db_path)
        assert db_path.exists()

    def test_reopen_keeps_data(self, tmp_path):
        db_path = tmp_path / "progress.db"
        ProgressLedger(db_path).mark_lesson_complete("alice", "l1")
        assert ProgressLedger(db_path).get_lesson_progress("alice", "l1").is_completed


class TestLessonProgress:
    """Test idempotent completion records."""

    def test_missing_record_is_not_completed(self, ledger):
        record = ledger.get_lesson_progress("alice", "l1")
        assert not record.is_completed
        assert record.completed_at is None

    def test_mark_complete(self, ledger):
        record = ledger.mark_lesson_complete("alice", "l1")
        assert record.is_completed
        assert record.completed_at is not None

    def test_replay_keeps_first_completion_time(self, ledger):
        first = ledger.mark_lesson_complete("alice", "l1")
        second = ledger.mark_lesson_complete("alice", "l1")
        assert second.completed_at == first.completed_at
        assert len(ledger.get_progress("alice")) == 1

    def test_progress_is_per_learner(self, ledger):
        ledger.mark_lesson_complete("alice", "l1")
        assert ledger.get_progress("bob") == {}

    def test_get_progress_filtered(self, ledger):
        ledger.mark_lesson_complete("alice", "l1")
        ledger.mark_lesson_complete("alice", "l2")
        assert set(ledger.get_progress("alice", ["l2", "l9"])) == {"l2"}
        assert ledger.get_progress("alice", []) == {}


class TestQuizAttempts:
    """Test the append-only attempt log."""

    def test_record_assigns_id(self, ledger):
        stored = ledger.record_attempt(make_attempt())
        assert stored.attempt_id is not None

    def test_answers_round_trip(self, ledger):
        ledger.record_attempt(make_attempt())
        [stored] = ledger.get_attempts("alice")
        assert stored.answers == {"q1-q0": "A", "q1-q1": ["A", "B"]}

    def test_attempts_accumulate_in_order(self, ledger):
        ledger.record_attempt(make_attempt(score=40, passed=False))
        ledger.record_attempt(make_attempt(score=90, passed=True))
        attempts = ledger.get_attempts("alice", ["q1"])
        assert [a.score for a in attempts] == [40, 90]
        assert attempts[0].attempt_id < attempts[1].attempt_id

    def test_attempts_in_insertion_order_when_clock_steps_back(self, ledger):
        ledger.record_attempt(make_attempt(score=90, passed=True, attempted_at=datetime(2024, 11, 3, 1, 30)))
        ledger.record_attempt(make_attempt(score=40, passed=False, attempted_at=datetime(2024, 11, 3, 0, 50)))
        assert [a.score for a in ledger.get_attempts("alice", ["q1"])] == [90, 40]

    def test_attempts_filtered_by_quiz(self, ledger):
        ledger.record_attempt(make_attempt(quiz_id="q1"))
        ledger.record_attempt(make_attempt(quiz_id="q2"))
        assert [a.quiz_id for a in ledger.get_attempts("alice", ["q2"])] == ["q2"]
        assert ledger.get_attempts("alice", []) == []

    def test_attempts_cannot_be_edited(self, ledger):
        ledger.record_attempt(make_attempt(score=40, passed=False))
        with pytest.raises(PersistenceFailure, match="append-only"):
            with ledger._connection("tamper with attempts") as conn:
                conn.execute("UPDATE quiz_attempts SET score = 100, passed = 1")
        assert ledger.get_attempts("alice")[0].score == 40


class TestSnapshot:
    """Test snapshot reads scoped to a course."""

    def test_snapshot_scoped_to_course(self, ledger, two_lesson_course):
        ledger.mark_lesson_complete("alice", "l1")
        ledger.mark_lesson_complete("alice", "other-course-lesson")
        ledger.record_attempt(make_attempt(quiz_id="q1"))
        ledger.record_attempt(make_attempt(quiz_id="other-quiz"))

        snapshot = ledger.get_snapshot("alice", two_lesson_course)

        assert set(snapshot.progress) == {"l1"}
        assert [a.quiz_id for a in snapshot.attempts] == ["q1"]

    def test_learner_ids(self, ledger):
        ledger.mark_lesson_complete("bob", "l1")
        ledger.record_attempt(make_attempt(learner_id="alice"))
        ledger.record_attempt(make_attempt(learner_id="alice"))
        assert ledger.get_learner_ids() == ["alice", "bob"]


class TestCertificates:
    """Test insert-if-absent certificate storage."""

    def test_create_then_return_existing(self, ledger):
        numbers = iter(["N-1", "N-2"])
        first, created = ledger.create_certificate_if_absent("alice", "c1", lambda: next(numbers))
        second, created_again = ledger.create_certificate_if_absent("alice", "c1", lambda: next(numbers))

        assert created and not created_again
        assert first.certificate_number == second.certificate_number == "N-1"
        assert len(ledger.list_certificates("alice")) == 1

    def test_number_collision_retried(self, ledger):
        ledger.create_certificate_if_absent("bob", "c1", lambda: "TAKEN")
        numbers = iter(["TAKEN", "TAKEN", "FRESH"])

        cert, created = ledger.create_certificate_if_absent("alice", "c1", lambda: next(numbers), retries=3)

        assert created
        assert cert.certificate_number == "FRESH"

    def test_exhausted_retries_fail(self, ledger):
        ledger.create_certificate_if_absent("bob", "c1", lambda: "TAKEN")
        with pytest.raises(PersistenceFailure):
            ledger.create_certificate_if_absent("alice", "c1", lambda: "TAKEN", retries=2)
        assert ledger.get_certificate("alice", "c1") is None

    def test_lookup_by_number(self, ledger):
        ledger.create_certificate_if_absent("alice", "c1", lambda: "N-42")
        found = ledger.get_certificate_by_number("N-42")
        assert found.learner_id == "alice"
        assert found.course_id == "c1"
        assert ledger.get_certificate_by_number("N-0") is None

    def test_certificates_cannot_be_edited(self, ledger):
        ledger.create_certificate_if_absent("alice", "c1", lambda: "N-1")
        with pytest.raises(PersistenceFailure):
            with ledger._connection("tamper with certificates") as conn:
                conn.execute("UPDATE certificates SET certificate_number = 'N-2'")
        assert ledger.get_certificate("alice", "c1").certificate_number == "N-1"


class TestPersistenceFailure:
    """Test that storage errors surface as PersistenceFailure."""

    def test_unreadable_database(self, ledger, tmp_path):
        broken = tmp_path / "not-a-db"
        broken.mkdir()
        ledger.db_path = broken

        with pytest.raises(PersistenceFailure):
            ledger.mark_lesson_complete("alice", "l1")
        with pytest.raises(PersistenceFailure):
            ledger.get_attempts("alice")

    def test_failed_write_rolls_back(self, ledger):
        with pytest.raises(PersistenceFailure):
            with ledger._connection("write then fail") as conn:
                conn.execute(
                    "INSERT INTO lesson_progress (learner_id, lesson_id, is_completed) VALUES ('alice', 'l1', 1)"
                )
                conn.execute("INSERT INTO no_such_table VALUES (1)")
        assert ledger.get_progress("alice") == {}
