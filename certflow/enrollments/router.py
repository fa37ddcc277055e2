"""Enrollment API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from certflow.auth.dependencies import CurrentActor
from certflow.core.errors import DomainError, handle_domain_error

from .dependencies import EnrollmentServiceDep
from .schemas import EnrollmentListResponse, EnrollmentResponse, EnrollRequest


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    enrollment_service: EnrollmentServiceDep,
    actor: CurrentActor,
) -> EnrollmentResponse:
    """Enroll the current user in a course.

    Returns 409 if the user is already enrolled.
    """
    try:
        enrollment = await enrollment_service.enroll(actor, data.course_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    enrollment_service: EnrollmentServiceDep,
    actor: CurrentActor,
) -> EnrollmentListResponse:
    try:
        enrollments = await enrollment_service.list_user_enrollments(actor.user_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    actor: CurrentActor,
) -> EnrollmentResponse:
    try:
        enrollment = await enrollment_service.get_enrollment(actor, enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)
