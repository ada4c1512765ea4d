"""
CourseGate Schemas - Pydantic models for the progression engine.

This module exports all schema classes for:
- Course: content graph (courses, sections, lessons, quizzes, questions)
- Progress: progress records, quiz attempts, certificates, summaries
"""

# Course schemas
from .course import (
    QuestionType,
    MediaProvider,
    Question,
    Quiz,
    LessonMedia,
    Lesson,
    Section,
    Course,
)

# Progress schemas
from .progress import (
    SubmittedAnswer,
    LessonStatus,
    ProgressRecord,
    QuizAttempt,
    Certificate,
    LearnerSnapshot,
    QuestionFeedback,
    QuizResult,
    SectionProgress,
    CourseProgressSummary,
)

__all__ = [
    # Course
    'QuestionType',
    'MediaProvider',
    'Question',
    'Quiz',
    'LessonMedia',
    'Lesson',
    'Section',
    'Course',
    # Progress
    'SubmittedAnswer',
    'LessonStatus',
    'ProgressRecord',
    'QuizAttempt',
    'Certificate',
    'LearnerSnapshot',
    'QuestionFeedback',
    'QuizResult',
    'SectionProgress',
    'CourseProgressSummary',
]
