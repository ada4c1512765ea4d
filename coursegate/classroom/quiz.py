"""
Quiz evaluation - Answer-key normalization, scoring and attempt recording.

Provides:
- Normalization of the three stored answer-key encodings
- Per-question correctness
- Scoring (0-100, half-up rounding) and pass/fail verdict
- QuizEngine: score a submission and append one attempt to the ledger
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

from coursegate.errors import ConfigurationError
from coursegate.schemas import (
    Question,
    QuestionFeedback,
    Quiz,
    QuizAttempt,
    QuizResult,
    SubmittedAnswer,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Answer keys
# -----------------------------------------------------------------------------

def normalize_correct_answer(raw: str) -> frozenset[str]:
    """
    Parse a stored correct answer into a set of accepted values.

    Accepted encodings:
        '["A", "C"]'  JSON array of strings
        'A, C'        comma-separated, each value trimmed
        'B'           single literal

    Raises:
        ConfigurationError: If the value is empty, starts with "[" or ends
            with "]" but does not decode to a list of strings, or yields no values
    """
    if raw is None or not raw.strip():
        raise ConfigurationError("Correct answer is empty")

    value = raw.strip()

    # A bracket at either end means JSON, even when the array is truncated
    if value.startswith("[") or value.endswith("]"):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Malformed JSON answer key {raw!r}: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
            raise ConfigurationError(f"JSON answer key must be an array of strings: {raw!r}")
        answers = frozenset(v for v in parsed if v)
    elif "," in value:
        answers = frozenset(part.strip() for part in value.split(",") if part.strip())
    else:
        answers = frozenset([value])

    if not answers:
        raise ConfigurationError(f"Answer key yields no values: {raw!r}")
    return answers


def is_unanswered(submitted: Optional[SubmittedAnswer]) -> bool:
    return submitted is None or len(submitted) == 0


def is_answer_correct(submitted: Optional[SubmittedAnswer], correct: frozenset[str]) -> bool:
    """
    Check one submitted answer against a normalized key.

    A single string is correct when it is one of the accepted values.
    A list is correct when it selects exactly the accepted values,
    in any order. Unanswered is always incorrect.
    """
    if is_unanswered(submitted):
        return False
    if isinstance(submitted, str):
        return submitted in correct
    return set(submitted) == correct


def compute_score(correct_count: int, total: int) -> int:
    """Percent of correct answers, rounded half up."""
    if total <= 0:
        raise ConfigurationError("Cannot score a quiz with no questions")
    return (200 * correct_count + total) // (2 * total)


# -----------------------------------------------------------------------------
# Grading
# -----------------------------------------------------------------------------

@dataclass
class GradedQuiz:
    """Outcome of scoring one submission, before it is persisted."""
    quiz_id: str
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    feedback: list[QuestionFeedback] = field(default_factory=list)


def validate_quiz(quiz: Quiz) -> dict[str, frozenset[str]]:
    """
    Check a quiz can be scored and return its normalized answer keys.

    Raises:
        ConfigurationError: If the quiz has no questions or any key is malformed
    """
    questions = quiz.ordered_questions()
    if not questions:
        raise ConfigurationError(f"Quiz {quiz.id} has no questions")

    keys = {}
    for question in questions:
        try:
            keys[question.id] = normalize_correct_answer(question.correct_answer)
        except ConfigurationError as e:
            raise ConfigurationError(f"Quiz {quiz.id}, question {question.id}: {e}") from e
    return keys


def _grade_question(question: Question, key: frozenset[str], submitted) -> QuestionFeedback:
    correct = is_answer_correct(submitted, key)
    return QuestionFeedback(
        question_id=question.id,
        is_correct=correct,
        explanation=None if correct else question.explanation,
    )


def grade_quiz(quiz: Quiz, answers: Mapping[str, Optional[SubmittedAnswer]]) -> GradedQuiz:
    """Score a submission. Every answer key is validated before anything is scored."""
    keys = validate_quiz(quiz)

    feedback = [
        _grade_question(question, keys[question.id], answers.get(question.id))
        for question in quiz.ordered_questions()
    ]
    correct_count = sum(1 for f in feedback if f.is_correct)
    total = len(feedback)
    score = compute_score(correct_count, total)

    return GradedQuiz(
        quiz_id=quiz.id,
        score=score,
        passed=score >= quiz.passing_score,
        correct_count=correct_count,
        total_questions=total,
        feedback=feedback,
    )


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

class QuizEngine:
    """
    Score submissions and record them as quiz attempts.

    Retakes are unlimited; each submission appends a new attempt.
    """

    def __init__(self, ledger):
        """
        Args:
            ledger: ProgressLedger used to append attempts
        """
        self.ledger = ledger

    def submit(
        self,
        learner_id: str,
        quiz: Quiz,
        answers: Mapping[str, Optional[SubmittedAnswer]],
    ) -> QuizResult:
        """
        Score a submission and persist it.

        Returns:
            QuizResult carrying the stored attempt

        Raises:
            ConfigurationError: If the quiz cannot be scored (nothing is stored)
            PersistenceFailure: If the attempt could not be written
        """
        graded = grade_quiz(quiz, answers)

        attempt = QuizAttempt(
            learner_id=learner_id,
            quiz_id=quiz.id,
            answers={qid: a for qid, a in answers.items() if a is not None},
            score=graded.score,
            passed=graded.passed,
            attempted_at=datetime.now(),
        )
        stored = self.ledger.record_attempt(attempt)

        logger.info(
            f"Learner {learner_id} scored {graded.score}% on quiz {quiz.id} "
            f"({graded.correct_count}/{graded.total_questions}, "
            f"{'passed' if graded.passed else 'failed'}, pass mark {quiz.passing_score}%)"
        )

        return QuizResult(
            quiz_id=quiz.id,
            score=graded.score,
            passed=graded.passed,
            correct_count=graded.correct_count,
            total_questions=graded.total_questions,
            feedback=graded.feedback,
            attempt=stored,
        )
