"""Pydantic schemas for progress tracking."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import ProgressRecord


class ProgressResponse(BaseModel):
    """Progress of one enrollment."""

    enrollment_id: UUID
    completed_lessons: list[UUID]
    completed_count: int
    total_lessons: int
    percentage: int = Field(ge=0, le=100, description="0-100 percentage")
    all_lessons_completed: bool
    updated_at: datetime | None = None

    @classmethod
    def from_record(
        cls, record: ProgressRecord, lesson_order: list[UUID] | None = None
    ) -> "ProgressResponse":
        """Create response, listing lessons in course order when known."""
        if lesson_order is not None:
            completed = [lid for lid in lesson_order if record.has_completed(lid)]
        else:
            completed = sorted(record.completed_lessons, key=str)
        return cls(
            enrollment_id=record.enrollment_id,
            completed_lessons=completed,
            completed_count=record.completed_count,
            total_lessons=record.total_lessons,
            percentage=record.percentage,
            all_lessons_completed=record.all_completed,
            updated_at=record.updated_at,
        )
