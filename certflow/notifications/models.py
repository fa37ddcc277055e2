"""Workflow notification events.

Events are fire-and-forget: the workflow emits them after a state change
and never waits for delivery.

Event types:
- ENROLLMENT_CREATED: A learner enrolled in a course
- CERTIFICATE_ISSUED: A passing attempt produced a certificate
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4


if TYPE_CHECKING:
    from certflow.certificates.models import Certificate
    from certflow.enrollments.models import Enrollment


class EventType(str, Enum):
    """Types of workflow events."""

    ENROLLMENT_CREATED = "enrollment_created"
    CERTIFICATE_ISSUED = "certificate_issued"


@dataclass(frozen=True)
class NotificationEvent:
    """Event addressed to one recipient with a minimal payload."""

    type: EventType
    recipient_id: UUID
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: UUID = field(default_factory=uuid4)

    def to_message(self) -> dict[str, Any]:
        """Wire representation published to subscribers."""
        return {
            "type": self.type.value,
            "event_id": str(self.event_id),
            "recipient_id": str(self.recipient_id),
            "occurred_at": self.occurred_at.isoformat(),
            "data": self.payload,
        }


def enrollment_created(
    enrollment: "Enrollment", course_title: str | None = None
) -> NotificationEvent:
    return NotificationEvent(
        type=EventType.ENROLLMENT_CREATED,
        recipient_id=enrollment.user_id,
        payload={
            "enrollment_id": str(enrollment.id),
            "course_id": str(enrollment.course_id),
            "course_title": course_title,
        },
        occurred_at=enrollment.enrolled_at,
    )


def certificate_issued(certificate: "Certificate") -> NotificationEvent:
    return NotificationEvent(
        type=EventType.CERTIFICATE_ISSUED,
        recipient_id=certificate.user_id,
        payload={
            "certificate_id": certificate.certificate_id,
            "course_id": str(certificate.course_id),
            "grade": certificate.grade,
            "percentage_score": certificate.percentage_score,
        },
        occurred_at=certificate.issued_at,
    )
