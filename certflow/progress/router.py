"""Progress tracking API endpoints.

Provides routes for:
- Manual lesson completion
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter

from certflow.auth.dependencies import CurrentActor
from certflow.core.errors import DomainError, handle_domain_error

from .dependencies import ProgressServiceDep
from .schemas import ProgressResponse


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.post(
    "/{enrollment_id}/lessons/{lesson_id}/complete",
    response_model=ProgressResponse,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    enrollment_id: UUID,
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    actor: CurrentActor,
) -> ProgressResponse:
    """Mark a lesson as complete.

    Idempotent: completing a lesson twice returns the same progress.
    """
    try:
        record = await progress_service.mark_lesson_complete(
            actor, enrollment_id, lesson_id
        )
    except DomainError as e:
        raise handle_domain_error(e) from e
    return ProgressResponse.from_record(record)


@router.get(
    "/{enrollment_id}",
    response_model=ProgressResponse,
    summary="Get enrollment progress",
)
async def get_progress(
    enrollment_id: UUID,
    progress_service: ProgressServiceDep,
    actor: CurrentActor,
) -> ProgressResponse:
    try:
        record = await progress_service.get_progress(actor, enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return ProgressResponse.from_record(record)
