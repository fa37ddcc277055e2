"""Course content service.

Thin layer over the ContentStore: read access for the workflow and the
admin-only quiz publish step.
"""

from typing import Any
from uuid import UUID

import structlog

from certflow.config.settings import Settings, get_settings
from certflow.core.context import Actor
from certflow.core.errors import NotFoundError, UnauthorizedError

from .models import CourseOutline, QuizDefinition
from .store import ContentStore
from .validation import parse_quiz_definition


logger = structlog.get_logger(__name__)


class CourseNotFoundError(NotFoundError):
    default_message = "Course not found"


class ContentService:
    """Service for course content lookups and assessment publishing."""

    def __init__(self, store: ContentStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    async def get_course_outline(self, course_id: UUID) -> CourseOutline:
        """Get course outline.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        outline = await self.store.get_course_outline(course_id)
        if outline is None:
            raise CourseNotFoundError(course_id=str(course_id))
        return outline

    async def get_quiz(self, course_id: UUID) -> QuizDefinition | None:
        return await self.store.get_quiz(course_id)

    async def publish_quiz(
        self,
        actor: Actor,
        course_id: UUID,
        payload: Any,
    ) -> QuizDefinition:
        """Validate an uploaded assessment and publish it for a course.

        Publishing replaces the previous quiz. Attempts already started keep
        grading against the definition they captured.

        Raises:
            UnauthorizedError: If the actor is not an admin
            CourseNotFoundError: If the course does not exist
            ValidationError: If the payload is not a valid assessment
        """
        if not actor.is_admin:
            raise UnauthorizedError("Only admins can publish assessments")

        await self.get_course_outline(course_id)

        previous = await self.store.get_quiz(course_id)
        quiz = parse_quiz_definition(course_id, payload, self.settings)
        await self.store.save_quiz(quiz, published_by=actor.user_id)

        logger.info(
            "quiz_published",
            course_id=str(course_id),
            quiz_id=str(quiz.id),
            questions=len(quiz.questions),
            total_points=quiz.total_points,
            replaced_quiz_id=str(previous.id) if previous else None,
        )
        return quiz
