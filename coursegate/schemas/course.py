"""
Course content schemas for CourseGate.

Defines Pydantic models for the read-only content graph:
- Course -> Section -> Lesson -> [Quiz -> Question]
- Flattened lesson order used for gating
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class MediaProvider(str, Enum):
    """Where a lesson's media is played from."""
    UPLOAD = "upload"     # self-hosted file, player reports progress
    MUX = "mux"           # HLS stream, no progress reporting
    YOUTUBE = "youtube"   # iframe, trusted
    EMBED = "embed"       # pasted embed code, trusted


# -----------------------------------------------------------------------------
# Quiz
# -----------------------------------------------------------------------------

class Question(BaseModel):
    """
    A quiz question.

    correct_answer is stored raw: a single value ("B"), a comma-separated
    list ("A,C") or a JSON array ('["A","C"]'). See classroom.quiz for
    normalization.
    """
    id: str
    question: str = ""
    question_type: QuestionType = QuestionType.SINGLE_CHOICE
    options: list[str] = []
    correct_answer: str
    explanation: Optional[str] = None  # shown when answered incorrectly
    position: int = 0


class Quiz(BaseModel):
    id: str
    title: str = ""
    passing_score: int = Field(70, ge=0, le=100)  # percent
    questions: list[Question] = []

    def ordered_questions(self) -> list[Question]:
        return sorted(self.questions, key=lambda q: q.position)


# -----------------------------------------------------------------------------
# Lessons and sections
# -----------------------------------------------------------------------------

class LessonMedia(BaseModel):
    provider: MediaProvider
    ref: str  # playback id, url or embed code


class Lesson(BaseModel):
    id: str
    title: str
    position: int
    duration_minutes: Optional[int] = Field(None, ge=0)
    is_free_preview: bool = False  # access control only, never gating
    media: Optional[LessonMedia] = None
    content: Optional[str] = None
    quiz: Optional[Quiz] = None

    @property
    def has_quiz(self) -> bool:
        return self.quiz is not None


class Section(BaseModel):
    id: str
    title: str
    position: int
    lessons: list[Lesson] = []

    def ordered_lessons(self) -> list[Lesson]:
        return sorted(self.lessons, key=lambda lesson: lesson.position)


def _check_total_order(positions: list[int], what: str):
    if len(positions) != len(set(positions)):
        raise ValueError(f"{what} positions must be unique, got {sorted(positions)}")


class Course(BaseModel):
    """
    A course as supplied by the authoring subsystem.

    Section order and lesson order within a section are total orders;
    duplicated positions are rejected at validation time.
    """
    id: str
    title: str
    sections: list[Section] = []

    @model_validator(mode="after")
    def _validate_graph(self):
        _check_total_order([s.position for s in self.sections], f"Section (course {self.id})")
        for section in self.sections:
            _check_total_order([l.position for l in section.lessons], f"Lesson (section {section.id})")

        lesson_ids = [lesson.id for section in self.sections for lesson in section.lessons]
        if len(lesson_ids) != len(set(lesson_ids)):
            raise ValueError(f"Duplicate lesson ids in course {self.id}")

        quiz_ids = [
            lesson.quiz.id
            for section in self.sections
            for lesson in section.lessons
            if lesson.quiz
        ]
        if len(quiz_ids) != len(set(quiz_ids)):
            raise ValueError(f"Duplicate quiz ids in course {self.id}")
        return self

    def ordered_sections(self) -> list[Section]:
        return sorted(self.sections, key=lambda s: s.position)

    def flattened_lessons(self) -> list[Lesson]:
        """All lessons in global order: sections in order, each section's lessons in order."""
        return [
            lesson
            for section in self.ordered_sections()
            for lesson in section.ordered_lessons()
        ]

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        for section in self.sections:
            for lesson in section.lessons:
                if lesson.id == lesson_id:
                    return lesson
        return None

    def get_lesson_for_quiz(self, quiz_id: str) -> Optional[Lesson]:
        for section in self.sections:
            for lesson in section.lessons:
                if lesson.quiz and lesson.quiz.id == quiz_id:
                    return lesson
        return None

    def get_section_for_lesson(self, lesson_id: str) -> Optional[Section]:
        for section in self.sections:
            if any(lesson.id == lesson_id for lesson in section.lessons):
                return section
        return None
