"""certflow API - Main Application."""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from certflow.assessments.router import router as assessments_router
from certflow.certificates.router import router as certificates_router
from certflow.config import get_settings
from certflow.core.container import (
    Services,
    build_services,
    cassandra_repositories,
    default_publisher,
    in_memory_repositories,
)
from certflow.core.context import get_request_id
from certflow.core.database import init_async_cassandra, shutdown_async_cassandra
from certflow.core.errors import DomainError, DomainHTTPException, status_for
from certflow.core.logging import configure_structlog, get_logger
from certflow.core.middleware import RequestContextMiddleware
from certflow.core.redis import init_redis, shutdown_redis
from certflow.courses.router import admin_router as courses_admin_router
from certflow.enrollments.router import router as enrollments_router
from certflow.health import router as health_router
from certflow.progress.router import router as progress_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


async def _build_default_services(redis_client) -> Services | None:
    """Services on the configured storage backend, None if it is down."""
    settings = get_settings()
    publisher = default_publisher(redis_client, settings)

    if settings.storage_backend == "memory":
        logger.info("storage_backend_memory")
        return build_services(in_memory_repositories(), publisher, settings)

    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )
        return None

    repositories = cassandra_repositories(session, settings.cassandra_keyspace)
    return build_services(repositories, publisher, settings)


def _make_lifespan(
    services_factory: Callable[[], Services] | None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        settings = get_settings()
        logger.info(
            "starting_application",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
            storage_backend=settings.storage_backend,
        )

        if services_factory is not None:
            services = services_factory()
        else:
            # Redis is non-critical: events fall back to the log
            redis_client = None
            try:
                redis_client = await init_redis()
                logger.info("redis_initialized")
            except Exception as e:
                logger.warning(
                    "redis_init_skipped",
                    error=str(e),
                    message="Running without Redis - events are only logged",
                )
            services = await _build_default_services(redis_client)

        if services is not None:
            services.attach(app.state)
            logger.info(
                "workflow_services_initialized",
                auto_submit=settings.assessment_server_auto_submit,
            )

        yield

        # Shutdown
        logger.info("shutting_down_application")
        if services is not None:
            await services.shutdown()
        if services_factory is None:
            await shutdown_redis()
            await shutdown_async_cassandra()

    return lifespan


def create_app(services_factory: Callable[[], Services] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services_factory: Builds the services at startup instead of the
            configured backends (tests)
    """
    settings = get_settings()

    # debug=False keeps Starlette from putting stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Progression, assessment and certification API",
        debug=False,
        lifespan=_make_lifespan(services_factory),
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_body(
        request: Request,
        status_code: int,
        message: str,
        code: str | None = None,
        details: object = None,
    ) -> dict:
        body = {
            "error": True,
            "code": code,
            "message": message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }
        if details:
            body["details"] = details
        return body

    # Global exception handlers (never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            code=getattr(exc, "code", None),
            path=request.url.path,
            method=request.method,
        )

        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        if isinstance(exc, DomainHTTPException):
            body = _error_body(
                request, exc.status_code, message, exc.code, exc.details
            )
        else:
            body = _error_body(request, exc.status_code, message)
        return ORJSONResponse(
            status_code=exc.status_code, content=body, headers=exc.headers
        )

    @app.exception_handler(DomainError)
    async def domain_exception_handler(
        request: Request, exc: DomainError
    ) -> ORJSONResponse:
        """Domain errors raised outside the routers' own handling."""
        status_code = status_for(exc)
        logger.warning(
            "domain_error",
            code=exc.code,
            message=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status_code,
            content=_error_body(
                request, status_code, exc.message, exc.code, exc.details
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                request,
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "Validation error",
                "validation_error",
                [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Details are logged, never returned.
        """
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred. Please try again later.",
            ),
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(assessments_router)
    app.include_router(certificates_router)
    app.include_router(courses_admin_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "certflow API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
