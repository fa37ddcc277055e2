"""Database models for assessment attempts.

Cassandra table definitions for:
- Assessment attempts: one row per attempt, answers and per-question results
  stored as JSON documents
- Attempts by enrollment: one row per attempt slot, written with
  ``IF NOT EXISTS`` so two concurrent starts cannot take the same slot

State machine: in_progress -> submitted (terminal). The transition is a
lightweight transaction conditioned on ``status = 'in_progress'``.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson

from certflow.utils.time import ensure_utc_aware, utc_now


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assessment_attempts (
    id UUID PRIMARY KEY,
    enrollment_id UUID,
    quiz_id UUID,
    attempt_number INT,
    status TEXT,
    answers TEXT,
    started_at TIMESTAMP,
    submitted_at TIMESTAMP,
    time_limit_seconds INT,
    time_spent_seconds INT,
    auto_submitted BOOLEAN,
    score INT,
    total_possible_points INT,
    percentage_score INT,
    grade TEXT,
    passed BOOLEAN,
    question_results TEXT,
    certificate_id TEXT
)
"""

# Attempt slots, ordered by attempt number
ATTEMPTS_BY_ENROLLMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.attempts_by_enrollment (
    enrollment_id UUID,
    attempt_number INT,
    attempt_id UUID,
    PRIMARY KEY (enrollment_id, attempt_number)
) WITH CLUSTERING ORDER BY (attempt_number ASC)
"""

ASSESSMENT_TABLES_CQL = [
    ATTEMPTS_TABLE_CQL,
    ATTEMPTS_BY_ENROLLMENT_TABLE_CQL,
]


# ==============================================================================
# Enums
# ==============================================================================


class AttemptStatus(str, Enum):
    """Assessment attempt status."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


# ==============================================================================
# Entity Classes
# ==============================================================================


class AssessmentAttempt:
    """One timed execution of a course assessment.

    Attributes:
        id: Attempt UUID
        enrollment_id: Enrollment the attempt belongs to
        quiz_id: Quiz definition captured at start
        attempt_number: 1-based slot within the enrollment
        status: in_progress or submitted
        answers: Selected option index per question (None = unanswered)
        started_at: Start timestamp
        submitted_at: Submit timestamp
        time_limit_seconds: Limit captured at start
        time_spent_seconds: Clamped time reported on submit
        auto_submitted: Submitted by the timer or on expiry
        score, total_possible_points, percentage_score, grade, passed: Result
        question_results: Per-question review entries
        certificate_id: Certificate the attempt resolved to, when passed
    """

    def __init__(
        self,
        enrollment_id: UUID,
        quiz_id: UUID,
        attempt_number: int,
        time_limit_seconds: int,
        question_count: int = 0,
        id: UUID | None = None,  # noqa: A002
        status: AttemptStatus | str = AttemptStatus.IN_PROGRESS,
        answers: list[int | None] | None = None,
        started_at: datetime | None = None,
        submitted_at: datetime | None = None,
        time_spent_seconds: int | None = None,
        auto_submitted: bool = False,
        score: int | None = None,
        total_possible_points: int | None = None,
        percentage_score: int | None = None,
        grade: str | None = None,
        passed: bool | None = None,
        question_results: list[dict[str, Any]] | None = None,
        certificate_id: str | None = None,
    ):
        self.id = id or uuid4()
        self.enrollment_id = enrollment_id
        self.quiz_id = quiz_id
        self.attempt_number = attempt_number
        self.time_limit_seconds = time_limit_seconds
        self.status = AttemptStatus(status)
        self.answers = (
            list(answers) if answers is not None else [None] * question_count
        )
        self.started_at = ensure_utc_aware(started_at) or utc_now()
        self.submitted_at = ensure_utc_aware(submitted_at)
        self.time_spent_seconds = time_spent_seconds
        self.auto_submitted = auto_submitted
        self.score = score
        self.total_possible_points = total_possible_points
        self.percentage_score = percentage_score
        self.grade = grade
        self.passed = passed
        self.question_results = question_results or []
        self.certificate_id = certificate_id

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS

    @property
    def is_submitted(self) -> bool:
        return self.status == AttemptStatus.SUBMITTED

    @property
    def expires_at(self) -> datetime:
        return self.started_at + timedelta(seconds=self.time_limit_seconds)

    def time_remaining_seconds(self, now: datetime) -> int:
        """Whole seconds left before the limit, never negative."""
        remaining = (self.expires_at - now).total_seconds()
        return max(0, int(remaining))

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @classmethod
    def from_row(cls, row: Any) -> "AssessmentAttempt":
        """Create AssessmentAttempt instance from Cassandra row."""
        return cls(
            id=row.id,
            enrollment_id=row.enrollment_id,
            quiz_id=row.quiz_id,
            attempt_number=row.attempt_number,
            time_limit_seconds=row.time_limit_seconds,
            status=row.status,
            answers=orjson.loads(row.answers) if row.answers else [],
            started_at=row.started_at,
            submitted_at=row.submitted_at,
            time_spent_seconds=row.time_spent_seconds,
            auto_submitted=bool(row.auto_submitted),
            score=row.score,
            total_possible_points=row.total_possible_points,
            percentage_score=row.percentage_score,
            grade=row.grade,
            passed=row.passed,
            question_results=(
                orjson.loads(row.question_results) if row.question_results else []
            ),
            certificate_id=row.certificate_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "quiz_id": self.quiz_id,
            "attempt_number": self.attempt_number,
            "status": self.status.value,
            "answers": list(self.answers),
            "started_at": self.started_at,
            "submitted_at": self.submitted_at,
            "time_limit_seconds": self.time_limit_seconds,
            "time_spent_seconds": self.time_spent_seconds,
            "auto_submitted": self.auto_submitted,
            "score": self.score,
            "total_possible_points": self.total_possible_points,
            "percentage_score": self.percentage_score,
            "grade": self.grade,
            "passed": self.passed,
            "question_results": list(self.question_results),
            "certificate_id": self.certificate_id,
        }

    def copy(self) -> "AssessmentAttempt":
        return AssessmentAttempt(**self.to_dict())

    def __repr__(self) -> str:
        return (
            f"<AssessmentAttempt {self.id} enrollment={self.enrollment_id} "
            f"#{self.attempt_number} {self.status.value}>"
        )
