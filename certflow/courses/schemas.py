"""Pydantic schemas for course content endpoints."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import QuizDefinition


class QuizSummaryResponse(BaseModel):
    """Published assessment summary (answer keys are never exposed)."""

    model_config = ConfigDict(from_attributes=True)

    quiz_id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    question_count: int
    total_points: int
    time_limit_minutes: int
    max_attempts: int
    passing_score_percent: int = Field(ge=0, le=100)

    @classmethod
    def from_quiz(cls, quiz: QuizDefinition) -> "QuizSummaryResponse":
        return cls(
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            title=quiz.title,
            description=quiz.description,
            question_count=len(quiz.questions),
            total_points=quiz.total_points,
            time_limit_minutes=quiz.time_limit_minutes,
            max_attempts=quiz.max_attempts,
            passing_score_percent=quiz.passing_score_percent,
        )
