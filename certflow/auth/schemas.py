"""Pydantic schemas for the authenticated principal."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .permissions import UserRole


class UserResponse(BaseModel):
    """Principal extracted from a validated access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str | None = None
    role: UserRole = UserRole.STUDENT
