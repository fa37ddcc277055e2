"""Database models for lesson progress.

One row per enrollment holding the set of completed lessons. Completion is
recorded with a set-add (``completed_lessons = completed_lessons + {id}``)
so concurrent completions commute and the set only grows.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID


PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_progress (
    enrollment_id UUID PRIMARY KEY,
    completed_lessons SET<UUID>,
    updated_at TIMESTAMP
)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_TABLE_CQL,
]


def completion_percentage(completed: int, total: int) -> int:
    """Whole percentage, rounded half up and clamped to [0, 100].

    A course without lessons counts as fully completed.
    """
    if total <= 0:
        return 100
    percent = (Decimal(completed) * 100 / Decimal(total)).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return max(0, min(100, int(percent)))


@dataclass(frozen=True)
class ProgressRecord:
    """Completed lessons of an enrollment.

    ``total_lessons`` comes from the course outline, it is not stored.
    """

    enrollment_id: UUID
    completed_lessons: frozenset[UUID] = field(default_factory=frozenset)
    total_lessons: int = 0
    updated_at: datetime | None = None

    @property
    def completed_count(self) -> int:
        return len(self.completed_lessons)

    @property
    def percentage(self) -> int:
        return completion_percentage(self.completed_count, self.total_lessons)

    @property
    def all_completed(self) -> bool:
        return self.completed_count >= self.total_lessons

    def has_completed(self, lesson_id: UUID) -> bool:
        return lesson_id in self.completed_lessons

    def restricted_to(self, lesson_ids: list[UUID]) -> "ProgressRecord":
        """Same record counted against a course's lessons only."""
        completed = frozenset(self.completed_lessons).intersection(lesson_ids)
        return replace(self, completed_lessons=completed, total_lessons=len(lesson_ids))
