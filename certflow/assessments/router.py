"""Assessment API endpoints.

Provides routes for:
- Starting or resuming an attempt
- Recording answers
- Submitting an attempt
- Attempt history
"""

from uuid import UUID

from fastapi import APIRouter

from certflow.auth.dependencies import CurrentActor
from certflow.certificates.schemas import CertificateResponse
from certflow.core.errors import DomainError, handle_domain_error

from .dependencies import AssessmentServiceDep
from .schemas import (
    AttemptHistoryResponse,
    AttemptResponse,
    RecordAnswerRequest,
    StartAssessmentResponse,
    SubmitRequest,
    SubmitResponse,
)


router = APIRouter(prefix="/v1/assessments", tags=["assessments"])


# ==============================================================================
# Enrollment-scoped Endpoints
# ==============================================================================


@router.post(
    "/enrollments/{enrollment_id}/start",
    response_model=StartAssessmentResponse,
    summary="Start assessment",
)
async def start_assessment(
    enrollment_id: UUID,
    assessment_service: AssessmentServiceDep,
    actor: CurrentActor,
) -> StartAssessmentResponse:
    """Start a timed attempt, or resume the one in progress.

    Requires every lesson of the course to be completed.
    """
    try:
        session = await assessment_service.start_assessment(actor, enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return StartAssessmentResponse(
        attempt_id=session.attempt.id,
        attempt_number=session.attempt.attempt_number,
        quiz_title=session.quiz.title,
        questions=StartAssessmentResponse.questions_of(session.quiz),
        answers=session.attempt.answers,
        time_limit_seconds=session.attempt.time_limit_seconds,
        time_remaining_seconds=session.time_remaining_seconds,
        passing_score_percent=session.quiz.passing_score_percent,
        attempts_remaining=session.attempts_remaining,
        resumed=session.resumed,
    )


@router.get(
    "/enrollments/{enrollment_id}/attempts",
    response_model=AttemptHistoryResponse,
    summary="List attempts",
)
async def list_attempts(
    enrollment_id: UUID,
    assessment_service: AssessmentServiceDep,
    actor: CurrentActor,
) -> AttemptHistoryResponse:
    try:
        history = await assessment_service.list_attempts(actor, enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    items = [AttemptResponse.from_entity(a) for a in history.attempts]
    return AttemptHistoryResponse(
        items=items,
        total=len(items),
        max_attempts=history.max_attempts,
        attempts_remaining=history.attempts_remaining,
        certificate_id=history.certificate_id,
    )


# ==============================================================================
# Attempt Endpoints
# ==============================================================================


@router.put(
    "/attempts/{attempt_id}/answers",
    response_model=AttemptResponse,
    summary="Record answer",
)
async def record_answer(
    attempt_id: UUID,
    data: RecordAnswerRequest,
    assessment_service: AssessmentServiceDep,
    actor: CurrentActor,
) -> AttemptResponse:
    """Record or change the answer to one question."""
    try:
        attempt = await assessment_service.record_answer(
            actor, attempt_id, data.question_index, data.option
        )
    except DomainError as e:
        raise handle_domain_error(e) from e
    return AttemptResponse.from_entity(attempt)


@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=SubmitResponse,
    summary="Submit assessment",
)
async def submit_assessment(
    attempt_id: UUID,
    data: SubmitRequest,
    assessment_service: AssessmentServiceDep,
    actor: CurrentActor,
) -> SubmitResponse:
    """Submit and grade an attempt.

    Returns 409 if the attempt was already submitted.
    """
    try:
        result = await assessment_service.submit_assessment(
            actor, attempt_id, data.time_spent_seconds, data.auto_submitted
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return SubmitResponse(
        attempt=AttemptResponse.from_entity(result.attempt),
        certificate=(
            CertificateResponse.from_entity(result.certificate)
            if result.certificate
            else None
        ),
        attempts_remaining=result.attempts_remaining,
    )


@router.get(
    "/attempts/{attempt_id}",
    response_model=AttemptResponse,
    summary="Get attempt",
)
async def get_attempt(
    attempt_id: UUID,
    assessment_service: AssessmentServiceDep,
    actor: CurrentActor,
) -> AttemptResponse:
    try:
        attempt = await assessment_service.get_attempt(actor, attempt_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return AttemptResponse.from_entity(attempt)
