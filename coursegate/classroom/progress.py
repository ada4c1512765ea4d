"""
ProgressLedger - Durable learner state in ~/.coursegate/progress.db.

Stores learner-scoped state separately from course content:
- Lesson progress (idempotent upsert per learner and lesson)
- Quiz attempts (append-only)
- Certificates (insert-if-absent, one per learner and course)

Any sqlite3 error is raised as PersistenceFailure; callers must not
treat a failed write as done.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from coursegate.errors import PersistenceFailure
from coursegate.schemas import (
    Certificate,
    Course,
    LearnerSnapshot,
    ProgressRecord,
    QuizAttempt,
)

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_DIR = Path.home() / ".coursegate"
DEFAULT_PROGRESS_DB = DEFAULT_PROGRESS_DIR / "progress.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS lesson_progress (
    learner_id TEXT NOT NULL,
    lesson_id TEXT NOT NULL,
    is_completed INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    PRIMARY KEY (learner_id, lesson_id)
);

CREATE TABLE IF NOT EXISTS quiz_attempts (
    attempt_id INTEGER PRIMARY KEY AUTOINCREMENT,
    learner_id TEXT NOT NULL,
    quiz_id TEXT NOT NULL,
    answers JSON NOT NULL DEFAULT '{}',
    score INTEGER NOT NULL,
    passed INTEGER NOT NULL,
    attempted_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_quiz_attempts_learner
ON quiz_attempts(learner_id, quiz_id);

CREATE TRIGGER IF NOT EXISTS quiz_attempts_append_only
BEFORE UPDATE ON quiz_attempts
BEGIN
    SELECT RAISE(ABORT, 'quiz attempts are append-only');
END;

CREATE TABLE IF NOT EXISTS certificates (
    learner_id TEXT NOT NULL,
    course_id TEXT NOT NULL,
    certificate_number TEXT NOT NULL UNIQUE,
    issued_at TEXT NOT NULL,
    PRIMARY KEY (learner_id, course_id)
);

CREATE TRIGGER IF NOT EXISTS certificates_immutable
BEFORE UPDATE ON certificates
BEGIN
    SELECT RAISE(ABORT, 'certificates are permanent');
END;
"""


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class ProgressLedger:
    """
    Track learner progress in a SQLite database.

    Progress is stored separately from content (content.db) so that:
    - Content can be republished without losing progress
    - Progress is learner-specific, content is shared

    Each method opens its own connection, so one ledger can serve
    many learners.
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: float = 5.0):
        """
        Initialize the ledger.

        Args:
            db_path: Path to progress.db (default: ~/.coursegate/progress.db)
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_PROGRESS_DB
        self.timeout = timeout
        self._ensure_database()

    def _ensure_database(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection("create progress database") as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connection(self, action: str, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Open a connection, commit on success, roll back and raise PersistenceFailure on error.

        With immediate=True the write lock is taken up front (BEGIN IMMEDIATE),
        serializing concurrent writers for the whole block.
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        except sqlite3.Error as e:
            logger.error(f"Could not open {self.db_path} to {action}: {e}")
            raise PersistenceFailure(f"Failed to {action}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            if immediate:
                conn.isolation_level = None
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceFailure(f"Failed to {action}: {e}") from e
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Lesson Progress
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> ProgressRecord:
        return ProgressRecord(
            learner_id=row["learner_id"],
            lesson_id=row["lesson_id"],
            is_completed=bool(row["is_completed"]),
            completed_at=_parse_time(row["completed_at"]),
        )

    def mark_lesson_complete(self, learner_id: str, lesson_id: str) -> ProgressRecord:
        """
        Upsert a completed progress record.

        Replaying a completion is a no-op: the first completion time is kept.
        """
        now = datetime.now().isoformat()
        with self._connection(f"mark lesson {lesson_id} complete for {learner_id}") as conn:
            conn.execute(
                """INSERT INTO lesson_progress (learner_id, lesson_id, is_completed, completed_at)
                   VALUES (?, ?, 1, ?)
                   ON CONFLICT(learner_id, lesson_id) DO UPDATE SET
                     is_completed = 1,
                     completed_at = COALESCE(completed_at, excluded.completed_at)""",
                (learner_id, lesson_id, now)
            )
            row = conn.execute(
                """SELECT learner_id, lesson_id, is_completed, completed_at
                   FROM lesson_progress
                   WHERE learner_id = ? AND lesson_id = ?""",
                (learner_id, lesson_id)
            ).fetchone()
        return self._row_to_progress(row)

    def get_lesson_progress(self, learner_id: str, lesson_id: str) -> ProgressRecord:
        """Get progress for one lesson; a missing row is an uncompleted record."""
        with self._connection(f"read progress of {learner_id}") as conn:
            row = conn.execute(
                """SELECT learner_id, lesson_id, is_completed, completed_at
                   FROM lesson_progress
                   WHERE learner_id = ? AND lesson_id = ?""",
                (learner_id, lesson_id)
            ).fetchone()
        if not row:
            return ProgressRecord(learner_id=learner_id, lesson_id=lesson_id)
        return self._row_to_progress(row)

    def get_progress(self, learner_id: str, lesson_ids: Optional[Iterable[str]] = None) -> dict[str, ProgressRecord]:
        """Get progress records keyed by lesson_id, optionally limited to some lessons."""
        query = """SELECT learner_id, lesson_id, is_completed, completed_at
                   FROM lesson_progress
                   WHERE learner_id = ?"""
        params: list = [learner_id]
        if lesson_ids is not None:
            lesson_ids = list(lesson_ids)
            if not lesson_ids:
                return {}
            query += f" AND lesson_id IN ({_placeholders(lesson_ids)})"
            params.extend(lesson_ids)

        with self._connection(f"read progress of {learner_id}") as conn:
            rows = conn.execute(query, params).fetchall()
        return {row["lesson_id"]: self._row_to_progress(row) for row in rows}

    # -------------------------------------------------------------------------
    # Quiz Attempts
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_attempt(row: sqlite3.Row) -> QuizAttempt:
        return QuizAttempt(
            attempt_id=row["attempt_id"],
            learner_id=row["learner_id"],
            quiz_id=row["quiz_id"],
            answers=json.loads(row["answers"] or "{}"),
            score=row["score"],
            passed=bool(row["passed"]),
            attempted_at=datetime.fromisoformat(row["attempted_at"]),
        )

    def record_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        """Append an attempt and return it with its assigned attempt_id."""
        with self._connection(f"record attempt at quiz {attempt.quiz_id} for {attempt.learner_id}") as conn:
            cursor = conn.execute(
                """INSERT INTO quiz_attempts (learner_id, quiz_id, answers, score, passed, attempted_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    attempt.learner_id,
                    attempt.quiz_id,
                    json.dumps(attempt.answers, ensure_ascii=False),
                    attempt.score,
                    int(attempt.passed),
                    attempt.attempted_at.isoformat(),
                )
            )
            attempt_id = cursor.lastrowid
        return attempt.model_copy(update={"attempt_id": attempt_id})

    def get_attempts(self, learner_id: str, quiz_ids: Optional[Iterable[str]] = None) -> list[QuizAttempt]:
        """Get attempts oldest first, optionally limited to some quizzes."""
        query = """SELECT attempt_id, learner_id, quiz_id, answers, score, passed, attempted_at
                   FROM quiz_attempts
                   WHERE learner_id = ?"""
        params: list = [learner_id]
        if quiz_ids is not None:
            quiz_ids = list(quiz_ids)
            if not quiz_ids:
                return []
            query += f" AND quiz_id IN ({_placeholders(quiz_ids)})"
            params.extend(quiz_ids)
        query += " ORDER BY attempt_id"

        with self._connection(f"read attempts of {learner_id}") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_attempt(row) for row in rows]

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def get_snapshot(self, learner_id: str, course: Course) -> LearnerSnapshot:
        """Read the learner's progress and attempts for one course."""
        lessons = course.flattened_lessons()
        quiz_ids = [lesson.quiz.id for lesson in lessons if lesson.quiz]
        return LearnerSnapshot(
            learner_id=learner_id,
            progress=self.get_progress(learner_id, [lesson.id for lesson in lessons]),
            attempts=self.get_attempts(learner_id, quiz_ids),
        )

    def get_learner_ids(self) -> list[str]:
        """Learners with any recorded progress, attempt or certificate."""
        with self._connection("list learners") as conn:
            rows = conn.execute(
                """SELECT learner_id FROM lesson_progress
                   UNION SELECT learner_id FROM quiz_attempts
                   UNION SELECT learner_id FROM certificates
                   ORDER BY learner_id"""
            ).fetchall()
        return [row["learner_id"] for row in rows]

    # -------------------------------------------------------------------------
    # Certificates
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_certificate(row: sqlite3.Row) -> Certificate:
        return Certificate(
            learner_id=row["learner_id"],
            course_id=row["course_id"],
            certificate_number=row["certificate_number"],
            issued_at=datetime.fromisoformat(row["issued_at"]),
        )

    def get_certificate(self, learner_id: str, course_id: str) -> Optional[Certificate]:
        with self._connection(f"read certificate of {learner_id}") as conn:
            row = conn.execute(
                """SELECT learner_id, course_id, certificate_number, issued_at
                   FROM certificates
                   WHERE learner_id = ? AND course_id = ?""",
                (learner_id, course_id)
            ).fetchone()
        return self._row_to_certificate(row) if row else None

    def get_certificate_by_number(self, certificate_number: str) -> Optional[Certificate]:
        with self._connection(f"look up certificate {certificate_number}") as conn:
            row = conn.execute(
                """SELECT learner_id, course_id, certificate_number, issued_at
                   FROM certificates
                   WHERE certificate_number = ?""",
                (certificate_number,)
            ).fetchone()
        return self._row_to_certificate(row) if row else None

    def list_certificates(self, learner_id: str) -> list[Certificate]:
        """Get a learner's certificates, newest first."""
        with self._connection(f"list certificates of {learner_id}") as conn:
            rows = conn.execute(
                """SELECT learner_id, course_id, certificate_number, issued_at
                   FROM certificates
                   WHERE learner_id = ?
                   ORDER BY issued_at DESC""",
                (learner_id,)
            ).fetchall()
        return [self._row_to_certificate(row) for row in rows]

    def create_certificate_if_absent(
        self,
        learner_id: str,
        course_id: str,
        generate_number: Callable[[], str],
        retries: int = 3,
    ) -> tuple[Certificate, bool]:
        """
        Insert a certificate unless one already exists for (learner, course).

        Runs under the write lock. The (learner_id, course_id) primary key is
        the source of truth; a certificate-number collision is retried with a
        fresh number up to `retries` times.

        Returns:
            (certificate, created) where created is False if one already existed

        Raises:
            PersistenceFailure: On I/O errors or when every number collided
        """
        select = """SELECT learner_id, course_id, certificate_number, issued_at
                    FROM certificates
                    WHERE learner_id = ? AND course_id = ?"""

        with self._connection(f"issue certificate for {learner_id} in {course_id}", immediate=True) as conn:
            row = conn.execute(select, (learner_id, course_id)).fetchone()
            if row:
                return self._row_to_certificate(row), False

            for attempt in range(1, retries + 1):
                number = generate_number()
                try:
                    cursor = conn.execute(
                        """INSERT INTO certificates (learner_id, course_id, certificate_number, issued_at)
                           VALUES (?, ?, ?, ?)
                           ON CONFLICT(learner_id, course_id) DO NOTHING""",
                        (learner_id, course_id, number, datetime.now().isoformat())
                    )
                except sqlite3.IntegrityError:
                    logger.warning(f"Certificate number {number} already taken (try {attempt}/{retries})")
                    continue

                row = conn.execute(select, (learner_id, course_id)).fetchone()
                return self._row_to_certificate(row), cursor.rowcount == 1

        raise PersistenceFailure(
            f"Could not allocate a unique certificate number for {learner_id} in {course_id} "
            f"after {retries} tries"
        )
