"""Progress Tracker service layer.

Business logic for:
- Idempotent lesson completion
- Completion percentage against the course outline
- The assessment gate
"""

from uuid import UUID

import structlog

from certflow.core.context import Actor
from certflow.core.errors import NotFoundError
from certflow.courses.models import CourseOutline
from certflow.courses.store import ContentStore
from certflow.enrollments.models import Enrollment
from certflow.enrollments.service import EnrollmentNotFoundError, EnrollmentService
from certflow.utils.time import Clock, utc_now

from .models import ProgressRecord
from .repository import ProgressRepository


logger = structlog.get_logger(__name__)


class LessonNotFoundError(NotFoundError):
    default_message = "Lesson not found in this course"


class ProgressService:
    """Service for lesson completion and course progress."""

    def __init__(
        self,
        repository: ProgressRepository,
        enrollment_service: EnrollmentService,
        content_store: ContentStore,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.enrollment_service = enrollment_service
        self.content_store = content_store
        self.clock = clock

    async def _outline(self, enrollment: Enrollment) -> CourseOutline:
        outline = await self.content_store.get_course_outline(enrollment.course_id)
        if outline is None:
            raise NotFoundError(
                "Course not found", course_id=str(enrollment.course_id)
            )
        return outline

    async def progress_for(
        self, enrollment: Enrollment, outline: CourseOutline | None = None
    ) -> ProgressRecord:
        """Progress of an enrollment counted against its course outline."""
        outline = outline or await self._outline(enrollment)
        stored = await self.repository.get(enrollment.id)
        record = stored or ProgressRecord(enrollment_id=enrollment.id)
        return record.restricted_to(outline.lesson_ids)

    async def mark_lesson_complete(
        self, actor: Actor, enrollment_id: UUID, lesson_id: UUID
    ) -> ProgressRecord:
        """Mark a lesson as completed.

        Completing an already completed lesson returns the current record
        unchanged.

        Raises:
            EnrollmentNotFoundError: If the enrollment is unknown or not the actor's
            LessonNotFoundError: If the lesson is not part of the course
        """
        enrollment = await self.enrollment_service.get_enrollment(actor, enrollment_id)
        outline = await self._outline(enrollment)

        if not outline.has_lesson(lesson_id):
            raise LessonNotFoundError(
                lesson_id=str(lesson_id), course_id=str(enrollment.course_id)
            )

        current = await self.progress_for(enrollment, outline)
        if current.has_completed(lesson_id):
            return current

        await self.repository.add_lesson(enrollment.id, lesson_id, self.clock())
        record = await self.progress_for(enrollment, outline)

        logger.info(
            "lesson_marked_complete",
            enrollment_id=str(enrollment.id),
            lesson_id=str(lesson_id),
            completed=record.completed_count,
            total=record.total_lessons,
            percentage=record.percentage,
        )
        if record.all_completed:
            logger.info(
                "course_lessons_completed",
                enrollment_id=str(enrollment.id),
                course_id=str(enrollment.course_id),
            )
        return record

    async def get_progress(self, actor: Actor, enrollment_id: UUID) -> ProgressRecord:
        """Get progress of an enrollment owned by the actor."""
        enrollment = await self.enrollment_service.get_enrollment(actor, enrollment_id)
        return await self.progress_for(enrollment)

    async def all_lessons_completed(self, enrollment_id: UUID) -> bool:
        """The assessment gate: every lesson of the course is completed.

        Raises:
            EnrollmentNotFoundError: If the enrollment is unknown
        """
        enrollment = await self.enrollment_service.find_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id=str(enrollment_id))
        record = await self.progress_for(enrollment)
        return record.all_completed
