"""Database models for course enrollments.

Cassandra table definitions for:
- Enrollments by user: one row per (user, course), written with
  ``IF NOT EXISTS`` so the pair is unique
- Enrollments: lookup by enrollment id

Architecture: Dual-write, the pair table is written first and decides
which of two concurrent enrollments wins.
"""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from certflow.utils.time import ensure_utc_aware, utc_now


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Uniqueness of (user_id, course_id) and "my enrollments" listing
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    enrollment_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP
)
"""

ENROLLMENT_TABLES_CQL = [
    ENROLLMENTS_BY_USER_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Binding of a learner to a course.

    Attributes:
        id: Enrollment UUID
        user_id: Learner UUID
        course_id: Course UUID
        enrolled_at: Enrollment timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        id: UUID | None = None,  # noqa: A002
        enrolled_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.course_id = course_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utc_now()

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            course_id=row.course_id,
            enrolled_at=row.enrolled_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "enrolled_at": self.enrolled_at,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Enrollment):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"<Enrollment {self.id} user={self.user_id} course={self.course_id}>"
