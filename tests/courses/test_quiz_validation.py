"""Tests for publish-time assessment validation."""

from uuid import uuid4

import pytest

from certflow.config import get_settings
from certflow.core.errors import ValidationError
from certflow.courses.validation import parse_quiz_definition


def valid_payload(**overrides) -> dict:
    payload = {
        "title": "Final assessment",
        "questions": [
            {
                "question": "What does len([1, 2]) return?",
                "options": ["1", "2", "3"],
                "correctAnswer": "2",
                "points": 5,
                "explanation": "Two elements",
            },
            {
                "text": "Which keyword defines a function?",
                "options": ["def", "fun", "lambda"],
                "correct_option": 0,
            },
        ],
        "timeLimit": 15,
        "maxAttempts": 2,
        "passingScore": 70,
    }
    payload.update(overrides)
    return payload


def errors_of(payload) -> list[str]:
    with pytest.raises(ValidationError) as exc_info:
        parse_quiz_definition(uuid4(), payload)
    return exc_info.value.errors


class TestParseQuizDefinition:
    def test_valid_payload(self) -> None:
        course_id = uuid4()
        quiz = parse_quiz_definition(course_id, valid_payload())

        assert quiz.course_id == course_id
        assert quiz.title == "Final assessment"
        assert len(quiz.questions) == 2
        assert quiz.questions[0].text == "What does len([1, 2]) return?"
        assert quiz.questions[0].correct_option == 1
        assert quiz.questions[1].correct_option == 0
        assert quiz.time_limit_minutes == 15
        assert quiz.max_attempts == 2
        assert quiz.passing_score_percent == 70

    def test_defaults_from_settings(self) -> None:
        settings = get_settings()
        payload = valid_payload()
        for key in ("timeLimit", "maxAttempts", "passingScore"):
            del payload[key]

        quiz = parse_quiz_definition(uuid4(), payload, settings)

        assert quiz.time_limit_minutes == settings.quiz_default_time_limit_minutes
        assert quiz.max_attempts == settings.quiz_default_max_attempts
        assert quiz.passing_score_percent == (
            settings.quiz_default_passing_score_percent
        )
        assert quiz.questions[1].points == settings.quiz_default_question_points

    def test_not_an_object(self) -> None:
        assert errors_of(["not", "a", "quiz"]) == ["Assessment must be an object"]

    def test_reports_every_problem(self) -> None:
        payload = valid_payload(
            title="",
            timeLimit=0,
            maxAttempts=11,
            passingScore=101,
            questions=[{"question": "", "options": ["only one"]}],
        )
        errors = errors_of(payload)

        assert "Title is required and must be a string" in errors
        assert any(e.startswith("Time limit") for e in errors)
        assert any(e.startswith("Max attempts") for e in errors)
        assert any(e.startswith("Passing score") for e in errors)
        assert "Question 1: Question text is required" in errors
        assert "Question 1: At least 2 options required" in errors
        assert "Question 1: Correct answer is required" in errors

    def test_missing_questions(self) -> None:
        assert "Questions array is required" in errors_of(valid_payload(questions=None))
        assert "At least one question is required" in errors_of(
            valid_payload(questions=[])
        )

    def test_too_many_options(self) -> None:
        question = {"text": "Q", "options": list("abcdefg"), "correct_option": 0}
        assert "Question 1: Maximum 6 options allowed" in errors_of(
            valid_payload(questions=[question])
        )

    def test_duplicate_options(self) -> None:
        question = {"text": "Q", "options": ["a", "a"], "correct_option": 0}
        assert "Question 1: Options must be unique" in errors_of(
            valid_payload(questions=[question])
        )

    def test_correct_answer_must_match_an_option(self) -> None:
        question = {"text": "Q", "options": ["a", "b"], "correctAnswer": "z"}
        assert "Question 1: Correct answer must be one of the options" in errors_of(
            valid_payload(questions=[question])
        )

    def test_correct_index_out_of_range(self) -> None:
        question = {"text": "Q", "options": ["a", "b"], "correct_option": 2}
        assert "Question 1: Correct option index out of range" in errors_of(
            valid_payload(questions=[question])
        )

    def test_negative_points(self) -> None:
        question = {
            "text": "Q",
            "options": ["a", "b"],
            "correct_option": 0,
            "points": -1,
        }
        assert "Question 1: Points must be a non-negative integer" in errors_of(
            valid_payload(questions=[question])
        )

    def test_zero_point_quiz_is_rejected(self) -> None:
        question = {
            "text": "Q",
            "options": ["a", "b"],
            "correct_option": 0,
            "points": 0,
        }
        assert errors_of(valid_payload(questions=[question])) == [
            "Assessment must award at least one point"
        ]

    def test_boolean_is_not_an_integer(self) -> None:
        errors = errors_of(valid_payload(maxAttempts=True))
        assert any(e.startswith("Max attempts") for e in errors)
