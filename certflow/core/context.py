"""Request context.

Two kinds of request-scoped data live here:

- Logging context (request_id, user_id, trace_id, correlation_id) kept in
  contextvars so every log line of a request carries them.
- The ``Actor``: the authenticated identity that core operations receive as
  an explicit argument. Workflow code never reads identity from contextvars.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from certflow.auth.permissions import UserRole, is_admin


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_VARS: dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


@dataclass(frozen=True)
class Actor:
    """Identity on whose behalf a core operation runs."""

    user_id: UUID
    role: UserRole = UserRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)

    def owns(self, user_id: UUID) -> bool:
        """True if the actor is the owner of a resource or an admin."""
        return self.is_admin or self.user_id == user_id


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if missing."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get the non-empty logging context variables as a dictionary."""
    return {name: var.get() for name, var in _VARS.items() if var.get()}


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leakage.
    """
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Context manager for a logging scope outside of HTTP requests.

    Used by background work (auto-submit timers, notification publishes) so
    their log lines keep the request_id of the request that scheduled them.

    Usage:
        with RequestContext(request_id=rid, user_id=actor.user_id):
            logger.info("assessment_auto_submitted")
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._values: dict[str, str | None] = {
            "request_id": request_id or generate_request_id(),
            "user_id": str(user_id) if user_id is not None else None,
            "trace_id": trace_id,
            "correlation_id": correlation_id,
        }
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "RequestContext":
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = _VARS[name].set(value)
        return self

    def __exit__(self, *_: object) -> None:
        for name, token in self._tokens.items():
            _VARS[name].reset(token)
        self._tokens.clear()
