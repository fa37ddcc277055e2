"""Database models for certificates.

Cassandra table definitions for:
- Certificates: lookup by public certificate id
- Certificates by enrollment: pointer to the canonical certificate of an
  enrollment, claimed with ``IF NOT EXISTS`` and replaced with
  ``IF certificate_id = ?`` once the previous one is revoked
- Certificates by user: "my certificates" listing

Certificates are immutable except for the revocation fields.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from certflow.utils.time import ensure_utc_aware, utc_now


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    certificate_id TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    course_title TEXT,
    enrollment_id UUID,
    attempt_id UUID,
    score INT,
    total_possible_points INT,
    percentage_score INT,
    grade TEXT,
    completion_date TIMESTAMP,
    issued_at TIMESTAMP,
    revoked BOOLEAN,
    revoked_reason TEXT,
    revoked_at TIMESTAMP
)
"""

CERTIFICATES_BY_ENROLLMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_enrollment (
    enrollment_id UUID PRIMARY KEY,
    certificate_id TEXT
)
"""

CERTIFICATES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_user (
    user_id UUID,
    certificate_id TEXT,
    PRIMARY KEY (user_id, certificate_id)
)
"""

CERTIFICATE_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_ENROLLMENT_TABLE_CQL,
    CERTIFICATES_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Completion certificate of a passed assessment.

    Attributes:
        certificate_id: Public identifier with check character
        user_id: Learner UUID
        course_id: Course UUID
        course_title: Course title at issue time
        enrollment_id: Enrollment UUID
        attempt_id: First passing attempt
        score: Points scored
        total_possible_points: Points available
        percentage_score: 0-100
        grade: Letter grade
        completion_date: Submit time of the passing attempt
        issued_at: Issue timestamp
        revoked: Revoked by an administrator
        revoked_reason: Reason shown by verification
        revoked_at: Revocation timestamp
    """

    def __init__(
        self,
        certificate_id: str,
        user_id: UUID,
        course_id: UUID,
        enrollment_id: UUID,
        attempt_id: UUID,
        score: int,
        total_possible_points: int,
        percentage_score: int,
        grade: str,
        completion_date: datetime,
        course_title: str = "",
        issued_at: datetime | None = None,
        revoked: bool = False,
        revoked_reason: str | None = None,
        revoked_at: datetime | None = None,
    ):
        self.certificate_id = certificate_id
        self.user_id = user_id
        self.course_id = course_id
        self.course_title = course_title
        self.enrollment_id = enrollment_id
        self.attempt_id = attempt_id
        self.score = score
        self.total_possible_points = total_possible_points
        self.percentage_score = percentage_score
        self.grade = grade
        self.completion_date = ensure_utc_aware(completion_date)
        self.issued_at = ensure_utc_aware(issued_at) or utc_now()
        self.revoked = revoked
        self.revoked_reason = revoked_reason
        self.revoked_at = ensure_utc_aware(revoked_at)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            certificate_id=row.certificate_id,
            user_id=row.user_id,
            course_id=row.course_id,
            course_title=row.course_title or "",
            enrollment_id=row.enrollment_id,
            attempt_id=row.attempt_id,
            score=row.score,
            total_possible_points=row.total_possible_points,
            percentage_score=row.percentage_score,
            grade=row.grade,
            completion_date=row.completion_date,
            issued_at=row.issued_at,
            revoked=bool(row.revoked),
            revoked_reason=row.revoked_reason,
            revoked_at=row.revoked_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "certificate_id": self.certificate_id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "course_title": self.course_title,
            "enrollment_id": self.enrollment_id,
            "attempt_id": self.attempt_id,
            "score": self.score,
            "total_possible_points": self.total_possible_points,
            "percentage_score": self.percentage_score,
            "grade": self.grade,
            "completion_date": self.completion_date,
            "issued_at": self.issued_at,
            "revoked": self.revoked,
            "revoked_reason": self.revoked_reason,
            "revoked_at": self.revoked_at,
        }

    def copy(self) -> "Certificate":
        return Certificate(**self.to_dict())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Certificate):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(self.certificate_id)

    def __repr__(self) -> str:
        state = "revoked" if self.revoked else "valid"
        return f"<Certificate {self.certificate_id} user={self.user_id} {state}>"
