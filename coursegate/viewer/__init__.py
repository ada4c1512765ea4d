"""CourseGate viewer - HTML rendering helpers for the course player."""

from .quiz import (
    get_quiz_css,
    question_hint,
    render_quiz_question,
    render_quiz_score,
    render_quiz_result,
)

__all__ = [
    "get_quiz_css",
    "question_hint",
    "render_quiz_question",
    "render_quiz_score",
    "render_quiz_result",
]
