"""Pure grading of multiple-choice answers.

``grade`` maps a published quiz and the recorded answers to a score,
percentage, pass/fail and letter grade. Same inputs, same output: no
clock, no randomness, no I/O.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from certflow.core.errors import InvalidAssessmentError, ValidationError
from certflow.courses.models import QuizDefinition


# Lower bound (inclusive) of each letter band, highest first
GRADE_BANDS: tuple[tuple[int, str], ...] = (
    (95, "A+"),
    (90, "A"),
    (85, "B+"),
    (80, "B"),
    (75, "C+"),
    (70, "C"),
    (60, "D"),
)
FAILING_GRADE = "F"


@dataclass(frozen=True)
class QuestionResult:
    """Outcome of one question, shown in the learner's review."""

    question_id: str
    selected_option: int | None
    correct_option: int
    is_correct: bool
    points_awarded: int
    points_possible: int
    explanation: str | None = None


@dataclass(frozen=True)
class GradeResult:
    score: int
    total_possible_points: int
    percentage_score: int
    passed: bool
    grade: str
    question_results: tuple[QuestionResult, ...] = ()


def letter_grade(percentage: int) -> str:
    """Letter grade of a 0-100 percentage."""
    for threshold, letter in GRADE_BANDS:
        if percentage >= threshold:
            return letter
    return FAILING_GRADE


def percentage_of(score: int, total: int) -> int:
    """``score / total * 100`` rounded half up."""
    ratio = Decimal(score) * 100 / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def grade(quiz: QuizDefinition, answers: Sequence[int | None]) -> GradeResult:
    """Grade answers against a quiz.

    Args:
        quiz: Published quiz definition
        answers: Selected option index per question, None when unanswered.
            Missing trailing entries count as unanswered.

    Returns:
        GradeResult

    Raises:
        InvalidAssessmentError: If the quiz awards no points
        ValidationError: If more answers than questions are given
    """
    total = quiz.total_points
    if total <= 0:
        raise InvalidAssessmentError(quiz_id=str(quiz.id))
    if len(answers) > len(quiz.questions):
        raise ValidationError(
            "Too many answers",
            [f"Expected at most {len(quiz.questions)} answers, got {len(answers)}"],
        )

    results = []
    for index, question in enumerate(quiz.questions):
        selected = answers[index] if index < len(answers) else None
        correct = selected is not None and selected == question.correct_option
        results.append(
            QuestionResult(
                question_id=str(question.id),
                selected_option=selected,
                correct_option=question.correct_option,
                is_correct=correct,
                points_awarded=question.points if correct else 0,
                points_possible=question.points,
                explanation=question.explanation,
            )
        )

    score = sum(r.points_awarded for r in results)
    percentage = min(100, max(0, percentage_of(score, total)))
    return GradeResult(
        score=score,
        total_possible_points=total,
        percentage_score=percentage,
        passed=percentage >= quiz.passing_score_percent,
        grade=letter_grade(percentage),
        question_results=tuple(results),
    )
