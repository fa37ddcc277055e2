"""Admin endpoints for course assessments."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body

from certflow.auth.dependencies import AdminUser
from certflow.core.context import Actor
from certflow.core.errors import DomainError, handle_domain_error

from .dependencies import ContentServiceDep
from .schemas import QuizSummaryResponse


admin_router = APIRouter(prefix="/v1/admin/courses", tags=["admin"])


@admin_router.put(
    "/{course_id}/assessment",
    response_model=QuizSummaryResponse,
    summary="Publish course assessment",
)
async def publish_assessment(
    course_id: UUID,
    content_service: ContentServiceDep,
    admin: AdminUser,
    payload: Any = Body(...),
) -> QuizSummaryResponse:
    """Validate and publish the assessment of a course.

    Accepts the authoring tool's JSON format. Every validation problem is
    reported at once; nothing is stored unless the whole document is valid.
    """
    try:
        quiz = await content_service.publish_quiz(
            Actor(user_id=admin.id, role=admin.role), course_id, payload
        )
    except DomainError as e:
        raise handle_domain_error(e) from e
    return QuizSummaryResponse.from_quiz(quiz)
