"""Enrollment Ledger service layer.

Business logic for:
- Enrolling a learner in a course (unique per user and course)
- Enrollment lookups with ownership checks
"""

from uuid import UUID

import structlog

from certflow.core.context import Actor
from certflow.core.errors import DuplicateEnrollmentError, NotFoundError
from certflow.courses.store import ContentStore
from certflow.notifications import NotificationDispatcher
from certflow.notifications.models import enrollment_created
from certflow.utils.time import Clock, utc_now

from .models import Enrollment
from .repository import EnrollmentRepository


logger = structlog.get_logger(__name__)


class EnrollmentNotFoundError(NotFoundError):
    default_message = "Enrollment not found"


class EnrollmentService:
    """Service for the enrollment ledger."""

    def __init__(
        self,
        repository: EnrollmentRepository,
        content_store: ContentStore,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.content_store = content_store
        self.dispatcher = dispatcher
        self.clock = clock

    async def enroll(self, actor: Actor, course_id: UUID) -> Enrollment:
        """Enroll the actor in a course.

        Emits ``enrollment_created`` without waiting for delivery.

        Raises:
            NotFoundError: If the course does not exist
            DuplicateEnrollmentError: If the actor is already enrolled
        """
        outline = await self.content_store.get_course_outline(course_id)
        if outline is None:
            raise NotFoundError("Course not found", course_id=str(course_id))

        enrollment = Enrollment(
            user_id=actor.user_id,
            course_id=course_id,
            enrolled_at=self.clock(),
        )
        if not await self.repository.create_if_absent(enrollment):
            raise DuplicateEnrollmentError(course_id=str(course_id))

        logger.info(
            "user_enrolled",
            enrollment_id=str(enrollment.id),
            user_id=str(actor.user_id),
            course_id=str(course_id),
        )
        self.dispatcher.emit(enrollment_created(enrollment, outline.title))
        return enrollment

    async def is_enrolled(self, user_id: UUID, course_id: UUID) -> bool:
        return await self.repository.get_by_user_course(user_id, course_id) is not None

    async def find_enrollment(self, enrollment_id: UUID) -> Enrollment | None:
        """Look up an enrollment without an ownership check.

        For internal callers acting on behalf of the system, such as the
        assessment gate and expiry auto-submit.
        """
        return await self.repository.get(enrollment_id)

    async def get_enrollment(self, actor: Actor, enrollment_id: UUID) -> Enrollment:
        """Get an enrollment owned by the actor (admins see all).

        Enrollments of other learners are reported as not found.

        Raises:
            EnrollmentNotFoundError: If missing or not visible to the actor
        """
        enrollment = await self.find_enrollment(enrollment_id)
        if enrollment is None or not actor.owns(enrollment.user_id):
            raise EnrollmentNotFoundError(enrollment_id=str(enrollment_id))
        return enrollment

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Enrollments of a learner, newest first."""
        return await self.repository.list_by_user(user_id)
