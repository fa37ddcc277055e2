# Core infrastructure
from certflow.core.context import (
    Actor,
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    set_request_id,
    set_user_id,
)
from certflow.core.errors import DomainError
from certflow.core.logging import configure_structlog, get_logger
from certflow.core.middleware import RequestContextMiddleware


__all__ = [
    "Actor",
    "DomainError",
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "set_user_id",
]
