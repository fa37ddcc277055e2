"""FastAPI dependencies for course content."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ContentService


async def get_content_service(request: Request) -> ContentService:
    """Get content service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "content_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content service not available",
        )
    return app_state.content_service


ContentServiceDep = Annotated[ContentService, Depends(get_content_service)]
