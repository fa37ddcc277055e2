"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Role-based access control
- The request-scoped Actor handed to core operations
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from certflow.auth.permissions import UserRole, has_permission
from certflow.auth.schemas import UserResponse
from certflow.auth.security import decode_access_token
from certflow.core.context import Actor, set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _user_from_payload(payload: dict) -> UserResponse:
    try:
        role = UserRole(payload.get("role", UserRole.STUDENT.value))
    except ValueError:
        role = UserRole.USER

    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError as e:
        msg = "Subject claim is not a valid user id"
        raise JWTError(msg) from e

    return UserResponse(id=user_id, email=payload.get("email"), role=role)


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> UserResponse:
    """Get current authenticated user from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = _user_from_payload(decode_access_token(token))
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Set user_id in context for logging
    set_user_id(user.id)
    return user


async def get_current_user_optional(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> UserResponse | None:
    """Get current user if authenticated, None otherwise."""
    if not token:
        return None

    try:
        user = _user_from_payload(decode_access_token(token))
    except JWTError:
        return None

    set_user_id(user.id)
    return user


def require_role(*allowed_roles: UserRole):
    """Create dependency requiring specific role(s).

    Example:
        @router.put("/admin-only")
        async def admin_endpoint(
            user: Annotated[UserResponse, Depends(require_role(UserRole.ADMIN))]
        ):
            ...
    """

    async def role_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return role_checker


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Uses hierarchical comparison: ADMIN >= INSTRUCTOR >= STUDENT >= USER
    """

    async def permission_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return permission_checker


async def get_current_actor(
    user: Annotated[UserResponse, Depends(get_current_user)],
) -> Actor:
    """Build the Actor passed explicitly into core operations."""
    return Actor(user_id=user.id, role=user.role)


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[UserResponse, Depends(get_current_user)]
OptionalUser = Annotated[UserResponse | None, Depends(get_current_user_optional)]
AdminUser = Annotated[UserResponse, Depends(require_role(UserRole.ADMIN))]
InstructorUser = Annotated[
    UserResponse, Depends(require_permission(UserRole.INSTRUCTOR))
]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
