"""
CourseLoader - Load course content from the content.db SQLite database.

Provides read-only access to:
- Courses with their sections, lessons, quizzes and questions
- Reverse lookups from lesson or quiz to course

Also provides the write side used by the compile script:
- load_course_file: parse a JSON or YAML course definition
- write_course: compile a validated Course into content.db
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from coursegate.errors import ConfigurationError
from coursegate.schemas import (
    Course,
    Lesson,
    LessonMedia,
    Question,
    Quiz,
    Section,
)

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sections (
    id TEXT PRIMARY KEY,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    position INTEGER NOT NULL,
    UNIQUE (course_id, position)
);

CREATE TABLE IF NOT EXISTS lessons (
    id TEXT PRIMARY KEY,
    section_id TEXT NOT NULL REFERENCES sections(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    position INTEGER NOT NULL,
    duration_minutes INTEGER,
    is_free_preview INTEGER NOT NULL DEFAULT 0,
    media JSON,
    content TEXT,
    UNIQUE (section_id, position)
);

CREATE TABLE IF NOT EXISTS quizzes (
    id TEXT PRIMARY KEY,
    lesson_id TEXT NOT NULL UNIQUE REFERENCES lessons(id) ON DELETE CASCADE,
    title TEXT,
    passing_score INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    quiz_id TEXT NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
    question TEXT,
    question_type TEXT NOT NULL,
    options JSON NOT NULL DEFAULT '[]',
    correct_answer TEXT NOT NULL,
    explanation TEXT,
    position INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sections_course ON sections(course_id);
CREATE INDEX IF NOT EXISTS idx_lessons_section ON lessons(section_id);
CREATE INDEX IF NOT EXISTS idx_questions_quiz ON questions(quiz_id);
"""


# -----------------------------------------------------------------------------
# Course files
# -----------------------------------------------------------------------------

def load_course_file(path: str | Path) -> Course:
    """
    Parse a course definition from a .json, .yaml or .yml file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file does not describe a valid course
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Course file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    try:
        return Course.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid course file {path}: {e}") from e


def write_course(course: Course, db_path: str | Path):
    """
    Compile a course into content.db, replacing any previous version of it.

    Every compile bumps the database user_version, which running
    CourseLoaders use to drop stale cached courses.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA)
        conn.execute("DELETE FROM courses WHERE id = ?", (course.id,))
        conn.execute("INSERT INTO courses (id, title) VALUES (?, ?)", (course.id, course.title))

        for section in course.sections:
            conn.execute(
                "INSERT INTO sections (id, course_id, title, position) VALUES (?, ?, ?, ?)",
                (section.id, course.id, section.title, section.position)
            )
            for lesson in section.lessons:
                conn.execute(
                    """INSERT INTO lessons (id, section_id, title, position, duration_minutes,
                                            is_free_preview, media, content)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        lesson.id,
                        section.id,
                        lesson.title,
                        lesson.position,
                        lesson.duration_minutes,
                        int(lesson.is_free_preview),
                        lesson.media.model_dump_json() if lesson.media else None,
                        lesson.content,
                    )
                )
                if lesson.quiz:
                    _write_quiz(conn, lesson.id, lesson.quiz)

        version = conn.execute("PRAGMA user_version").fetchone()[0]
        conn.execute(f"PRAGMA user_version = {version + 1}")
        conn.commit()
        logger.info(f"Compiled course {course.id} ({len(course.flattened_lessons())} lessons) into {db_path}")
    finally:
        conn.close()


def _write_quiz(conn: sqlite3.Connection, lesson_id: str, quiz: Quiz):
    conn.execute(
        "INSERT INTO quizzes (id, lesson_id, title, passing_score) VALUES (?, ?, ?, ?)",
        (quiz.id, lesson_id, quiz.title, quiz.passing_score)
    )
    conn.executemany(
        """INSERT INTO questions (id, quiz_id, question, question_type, options,
                                  correct_answer, explanation, position)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                q.id,
                quiz.id,
                q.question,
                q.question_type.value,
                json.dumps(q.options, ensure_ascii=False),
                q.correct_answer,
                q.explanation,
                q.position,
            )
            for q in quiz.questions
        ]
    )


# -----------------------------------------------------------------------------
# Loader
# -----------------------------------------------------------------------------

class CourseLoader:
    """
    Load course content from SQLite database.

    Loaded courses are cached per loader. The cache is dropped whenever
    the content version changes, so a running app sees recompiled courses.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize loader with path to content.db.

        Args:
            db_path: Path to content.db file
        """
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            raise FileNotFoundError(f"Content database not found: {db_path}")
        self._cache: dict[str, Course] = {}
        self._cache_version: Optional[int] = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Courses
    # -------------------------------------------------------------------------

    def get_course_ids(self) -> list[str]:
        conn = self._get_connection()
        try:
            cursor = conn.execute("SELECT id FROM courses ORDER BY id")
            return [row["id"] for row in cursor.fetchall()]
        finally:
            conn.close()

    def _sync_cache(self, conn: sqlite3.Connection):
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version != self._cache_version:
            if self._cache:
                logger.info(f"Content database changed (version {version}), clearing course cache")
            self._cache.clear()
            self._cache_version = version

    def get_course(self, course_id: str) -> Optional[Course]:
        """Get a full course tree by ID, or None if unknown."""
        conn = self._get_connection()
        try:
            self._sync_cache(conn)
            if course_id in self._cache:
                return self._cache[course_id]

            row = conn.execute(
                "SELECT id, title FROM courses WHERE id = ?", (course_id,)
            ).fetchone()
            if not row:
                return None

            sections = [
                Section(
                    id=s["id"],
                    title=s["title"],
                    position=s["position"],
                    lessons=self._load_lessons(conn, s["id"]),
                )
                for s in conn.execute(
                    "SELECT id, title, position FROM sections WHERE course_id = ? ORDER BY position",
                    (course_id,)
                ).fetchall()
            ]
        finally:
            conn.close()

        course = Course(id=row["id"], title=row["title"], sections=sections)
        self._cache[course_id] = course
        return course

    def _load_lessons(self, conn: sqlite3.Connection, section_id: str) -> list[Lesson]:
        cursor = conn.execute(
            """SELECT id, title, position, duration_minutes, is_free_preview, media, content
               FROM lessons
               WHERE section_id = ?
               ORDER BY position""",
            (section_id,)
        )
        return [
            Lesson(
                id=row["id"],
                title=row["title"],
                position=row["position"],
                duration_minutes=row["duration_minutes"],
                is_free_preview=bool(row["is_free_preview"]),
                media=LessonMedia.model_validate_json(row["media"]) if row["media"] else None,
                content=row["content"],
                quiz=self._load_quiz(conn, row["id"]),
            )
            for row in cursor.fetchall()
        ]

    def _load_quiz(self, conn: sqlite3.Connection, lesson_id: str) -> Optional[Quiz]:
        row = conn.execute(
            "SELECT id, title, passing_score FROM quizzes WHERE lesson_id = ?",
            (lesson_id,)
        ).fetchone()
        if not row:
            return None

        questions = [
            Question(
                id=q["id"],
                question=q["question"] or "",
                question_type=q["question_type"],
                options=json.loads(q["options"] or "[]"),
                correct_answer=q["correct_answer"],
                explanation=q["explanation"],
                position=q["position"],
            )
            for q in conn.execute(
                """SELECT id, question, question_type, options, correct_answer, explanation, position
                   FROM questions
                   WHERE quiz_id = ?
                   ORDER BY position""",
                (row["id"],)
            ).fetchall()
        ]
        return Quiz(
            id=row["id"],
            title=row["title"] or "",
            passing_score=row["passing_score"],
            questions=questions,
        )

    # -------------------------------------------------------------------------
    # Reverse lookups
    # -------------------------------------------------------------------------

    def get_course_id_for_lesson(self, lesson_id: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT s.course_id
                   FROM lessons l
                   JOIN sections s ON l.section_id = s.id
                   WHERE l.id = ?""",
                (lesson_id,)
            ).fetchone()
            return row["course_id"] if row else None
        finally:
            conn.close()

    def get_course_id_for_quiz(self, quiz_id: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT s.course_id
                   FROM quizzes q
                   JOIN lessons l ON q.lesson_id = l.id
                   JOIN sections s ON l.section_id = s.id
                   WHERE q.id = ?""",
                (quiz_id,)
            ).fetchone()
            return row["course_id"] if row else None
        finally:
            conn.close()
