"""Publish-time validation of uploaded assessments.

Uploaded quizzes arrive as loosely shaped JSON (the authoring tool accepts
both ``question``/``text`` and ``correctAnswer``/``correct_option`` styles).
``parse_quiz_definition`` turns that payload into an immutable
``QuizDefinition`` or raises ``ValidationError`` listing every problem found.
Grading never re-validates.
"""

from typing import Any
from uuid import UUID, uuid4

from certflow.config.settings import Settings, get_settings
from certflow.core.errors import ValidationError

from .models import QuizDefinition, QuizQuestion


# ==============================================================================
# Constants for validation rules
# ==============================================================================

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500
QUESTIONS_MIN = 1
QUESTIONS_MAX = 100
OPTIONS_MIN = 2
OPTIONS_MAX = 6
TIME_LIMIT_MIN = 1
TIME_LIMIT_MAX = 180
MAX_ATTEMPTS_MIN = 1
MAX_ATTEMPTS_MAX = 10
PASSING_SCORE_MIN = 0
PASSING_SCORE_MAX = 100

_MISSING = object()


def _first(data: dict[str, Any], *keys: str) -> Any:
    """Value of the first key present in ``data``."""
    for key in keys:
        if key in data:
            return data[key]
    return _MISSING


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _bounded_int(
    data: dict[str, Any],
    keys: tuple[str, ...],
    label: str,
    low: int,
    high: int,
    default: int,
    errors: list[str],
) -> int:
    value = _first(data, *keys)
    if value is _MISSING or value is None:
        return default
    if not _is_int(value) or not low <= value <= high:
        errors.append(f"{label} must be an integer between {low} and {high}")
        return default
    return value


def _parse_correct_option(
    raw: dict[str, Any], options: list[Any], prefix: str, errors: list[str]
) -> int | None:
    correct = _first(
        raw, "correct_option", "correctOption", "correct_answer", "correctAnswer"
    )
    if correct is _MISSING or correct is None or correct == "":
        errors.append(f"{prefix}: Correct answer is required")
        return None

    if _is_int(correct):
        if not 0 <= correct < len(options):
            errors.append(f"{prefix}: Correct option index out of range")
            return None
        return correct

    if isinstance(correct, str):
        if correct not in options:
            errors.append(f"{prefix}: Correct answer must be one of the options")
            return None
        return options.index(correct)

    errors.append(f"{prefix}: Correct answer must be an option index or option text")
    return None


def _parse_question(
    raw: Any, index: int, default_points: int, errors: list[str]
) -> QuizQuestion | None:
    prefix = f"Question {index + 1}"
    if not isinstance(raw, dict):
        errors.append(f"{prefix}: must be an object")
        return None

    start_errors = len(errors)

    text = _first(raw, "text", "question")
    if not isinstance(text, str) or not text.strip():
        errors.append(f"{prefix}: Question text is required")

    options = raw.get("options")
    if not isinstance(options, list):
        errors.append(f"{prefix}: Options array is required")
        options = []
    elif len(options) < OPTIONS_MIN:
        errors.append(f"{prefix}: At least {OPTIONS_MIN} options required")
    elif len(options) > OPTIONS_MAX:
        errors.append(f"{prefix}: Maximum {OPTIONS_MAX} options allowed")
    elif not all(isinstance(o, str) and o.strip() for o in options):
        errors.append(f"{prefix}: Options must be non-empty strings")
    elif len(set(options)) != len(options):
        errors.append(f"{prefix}: Options must be unique")

    correct_option = _parse_correct_option(raw, options, prefix, errors)

    points = raw.get("points")
    if points is None:
        points = default_points
    elif not _is_int(points) or points < 0:
        errors.append(f"{prefix}: Points must be a non-negative integer")

    explanation = raw.get("explanation")
    if explanation is not None and not isinstance(explanation, str):
        errors.append(f"{prefix}: Explanation must be a string")

    if len(errors) > start_errors or correct_option is None:
        return None

    try:
        question_id = UUID(str(raw["id"])) if raw.get("id") else uuid4()
    except ValueError:
        question_id = uuid4()

    return QuizQuestion(
        id=question_id,
        text=text.strip(),
        options=tuple(options),
        correct_option=correct_option,
        points=points,
        explanation=explanation,
    )


def parse_quiz_definition(
    course_id: UUID,
    payload: Any,
    settings: Settings | None = None,
    quiz_id: UUID | None = None,
) -> QuizDefinition:
    """Validate an uploaded assessment and build its QuizDefinition.

    Args:
        course_id: Course the quiz is published for
        payload: Decoded JSON document
        settings: Source of defaults for omitted limits
        quiz_id: Identifier to use, generated when omitted

    Returns:
        Immutable QuizDefinition

    Raises:
        ValidationError: With one message per problem found
    """
    settings = settings or get_settings()

    if not isinstance(payload, dict):
        raise ValidationError(
            "Invalid assessment data", ["Assessment must be an object"]
        )

    errors: list[str] = []

    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Title is required and must be a string")
    elif len(title) > TITLE_MAX_LENGTH:
        errors.append(f"Title cannot be more than {TITLE_MAX_LENGTH} characters")

    description = payload.get("description")
    if description is not None and (
        not isinstance(description, str) or len(description) > DESCRIPTION_MAX_LENGTH
    ):
        errors.append(
            "Description must be a string of at most "
            f"{DESCRIPTION_MAX_LENGTH} characters"
        )

    questions: list[QuizQuestion] = []
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list):
        errors.append("Questions array is required")
    elif len(raw_questions) < QUESTIONS_MIN:
        errors.append("At least one question is required")
    elif len(raw_questions) > QUESTIONS_MAX:
        errors.append(f"Maximum {QUESTIONS_MAX} questions allowed")
    else:
        for index, raw in enumerate(raw_questions):
            question = _parse_question(
                raw, index, settings.quiz_default_question_points, errors
            )
            if question is not None:
                questions.append(question)

    time_limit = _bounded_int(
        payload,
        ("time_limit_minutes", "timeLimit"),
        "Time limit (minutes)",
        TIME_LIMIT_MIN,
        TIME_LIMIT_MAX,
        settings.quiz_default_time_limit_minutes,
        errors,
    )
    max_attempts = _bounded_int(
        payload,
        ("max_attempts", "maxAttempts"),
        "Max attempts",
        MAX_ATTEMPTS_MIN,
        MAX_ATTEMPTS_MAX,
        settings.quiz_default_max_attempts,
        errors,
    )
    passing_score = _bounded_int(
        payload,
        ("passing_score_percent", "passingScore"),
        "Passing score",
        PASSING_SCORE_MIN,
        PASSING_SCORE_MAX,
        settings.quiz_default_passing_score_percent,
        errors,
    )

    if not errors and sum(q.points for q in questions) == 0:
        errors.append("Assessment must award at least one point")

    if errors:
        raise ValidationError("Invalid assessment data", errors)

    return QuizDefinition(
        id=quiz_id or uuid4(),
        course_id=course_id,
        title=title.strip(),
        description=description,
        questions=tuple(questions),
        time_limit_minutes=time_limit,
        passing_score_percent=passing_score,
        max_attempts=max_attempts,
    )
