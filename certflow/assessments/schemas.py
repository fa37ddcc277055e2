"""Pydantic schemas for assessments.

Questions sent to the learner never carry the correct option.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from certflow.certificates.schemas import CertificateResponse
from certflow.courses.models import QuizDefinition

from .models import AssessmentAttempt, AttemptStatus


# ==============================================================================
# Request Schemas
# ==============================================================================


class RecordAnswerRequest(BaseModel):
    """Answer to one question; ``option=None`` clears it."""

    question_index: int = Field(..., ge=0, description="0-based question index")
    option: int | None = Field(None, ge=0, description="0-based option index")


class SubmitRequest(BaseModel):
    time_spent_seconds: int = Field(
        0, description="Client-measured time, clamped by the server"
    )
    auto_submitted: bool = Field(
        False, description="Submitted by the client countdown reaching zero"
    )


# ==============================================================================
# Response Schemas
# ==============================================================================


class QuestionResponse(BaseModel):
    """Question without its answer key."""

    index: int
    id: UUID
    text: str
    options: list[str]
    points: int


class QuestionResultResponse(BaseModel):
    question_id: str
    selected_option: int | None = None
    correct_option: int
    is_correct: bool
    points_awarded: int
    points_possible: int
    explanation: str | None = None


class AttemptResponse(BaseModel):
    """Assessment attempt. Results are only present once submitted."""

    id: UUID
    enrollment_id: UUID
    quiz_id: UUID
    attempt_number: int
    status: AttemptStatus
    answers: list[int | None]
    started_at: datetime
    time_limit_seconds: int
    submitted_at: datetime | None = None
    time_spent_seconds: int | None = None
    auto_submitted: bool = False
    score: int | None = None
    total_possible_points: int | None = None
    percentage_score: int | None = None
    grade: str | None = None
    passed: bool | None = None
    question_results: list[QuestionResultResponse] = Field(default_factory=list)
    certificate_id: str | None = None

    @classmethod
    def from_entity(cls, attempt: AssessmentAttempt) -> "AttemptResponse":
        data: dict[str, Any] = attempt.to_dict()
        if not attempt.is_submitted:
            data["question_results"] = []
        return cls.model_validate(data)


class StartAssessmentResponse(BaseModel):
    attempt_id: UUID
    attempt_number: int
    quiz_title: str
    questions: list[QuestionResponse]
    answers: list[int | None]
    time_limit_seconds: int
    time_remaining_seconds: int
    passing_score_percent: int
    attempts_remaining: int
    resumed: bool = False

    @staticmethod
    def questions_of(quiz: QuizDefinition) -> list[QuestionResponse]:
        return [
            QuestionResponse(
                index=index,
                id=q.id,
                text=q.text,
                options=list(q.options),
                points=q.points,
            )
            for index, q in enumerate(quiz.questions)
        ]


class SubmitResponse(BaseModel):
    attempt: AttemptResponse
    certificate: CertificateResponse | None = None
    attempts_remaining: int


class AttemptHistoryResponse(BaseModel):
    items: list[AttemptResponse]
    total: int
    max_attempts: int | None = None
    attempts_remaining: int
    certificate_id: str | None = None
