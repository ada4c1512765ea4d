"""
Quiz renderer - Quiz question and result display.

Provides:
- Question rendering with options
- Result box (score, pass mark, correct count)
- Explanations for incorrectly answered questions
"""

import html
from typing import Optional

from coursegate.schemas import Question, QuestionType, Quiz, QuizResult


# Only the classes emitted by the render_* functions below
QUIZ_CSS = """
<style>
.quiz-container { background: #f4f8fb; border: 1px solid #cfdde8; border-radius: 10px; padding: 1.2em 1.4em; margin: 1em 0; }
.quiz-title { font-weight: 600; color: #2b4c6f; }
.quiz-question { font-size: 1.05em; line-height: 1.5; margin: 0.6em 0; }
.quiz-hint { color: #777; font-size: 0.85em; font-style: italic; }
.quiz-score-box { border-radius: 10px; padding: 1em; margin-top: 1.2em; text-align: center; }
.quiz-score-box.passed { background: #eaf6ec; color: #2e7d32; }
.quiz-score-box.failed { background: #fdecea; color: #b71c1c; }
.quiz-score-value { font-size: 1.8em; font-weight: 700; }
.quiz-score-label { color: #555; font-size: 0.9em; }
.quiz-explanation { background: #fff8e1; border-left: 3px solid #f9a825; padding: 0.6em 0.9em; margin-top: 0.6em; }
</style>
"""


def get_quiz_css() -> str:
    """Get CSS styles for quiz display."""
    return QUIZ_CSS


def question_hint(question: Question) -> str:
    if question.question_type == QuestionType.MULTIPLE_CHOICE:
        return "Select all that apply"
    if question.question_type == QuestionType.TRUE_FALSE:
        return "True or false"
    return "Select one answer"


def render_quiz_question(question: Question, index: int, total: int) -> str:
    """
    Render a question header (options are rendered by the caller's widgets).

    Args:
        question: Question to render
        index: 0-based position in the quiz
        total: Number of questions in the quiz

    Returns:
        HTML string for the question
    """
    parts = ['<div class="quiz-container">']
    parts.append(f'<div class="quiz-title">Question {index + 1} of {total}</div>')
    parts.append(f'<div class="quiz-question">{html.escape(question.question)}</div>')
    parts.append(f'<div class="quiz-hint">{question_hint(question)}</div>')
    parts.append('</div>')
    return ''.join(parts)


def render_quiz_score(result: QuizResult, passing_score: int) -> str:
    """Render quiz score display."""
    css_class = "passed" if result.passed else "failed"
    verdict = "Passed" if result.passed else "Not passed yet"
    return f"""
    <div class="quiz-score-box {css_class}">
        <div class="quiz-score-value">{result.score}%</div>
        <div class="quiz-score-label">{verdict} (pass mark {passing_score}%)</div>
        <div class="quiz-score-label">{result.correct_count} of {result.total_questions} correct</div>
    </div>
    """


def render_quiz_result(quiz: Quiz, result: QuizResult, show_explanations: bool = True) -> str:
    """
    Render the result of a submission.

    Args:
        quiz: Quiz that was submitted
        result: Scored result
        show_explanations: Include explanations of incorrectly answered questions

    Returns:
        HTML string with the score box and explanations
    """
    parts = [get_quiz_css(), render_quiz_score(result, quiz.passing_score)]
    if not show_explanations:
        return ''.join(parts)

    questions = {q.id: q for q in quiz.questions}
    for feedback in result.feedback:
        if feedback.is_correct or not feedback.explanation:
            continue
        question: Optional[Question] = questions.get(feedback.question_id)
        title = html.escape(question.question) if question else html.escape(feedback.question_id)
        parts.append(
            f'<div class="quiz-explanation"><b>{title}</b><br>{html.escape(feedback.explanation)}</div>'
        )
    return ''.join(parts)
