"""FastAPI dependencies for assessments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AssessmentService


async def get_assessment_service(request: Request) -> AssessmentService:
    """Get assessment service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "assessment_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assessment service not available",
        )
    return app_state.assessment_service


AssessmentServiceDep = Annotated[AssessmentService, Depends(get_assessment_service)]
