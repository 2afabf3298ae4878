"""Ecclesia API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ecclesia.assignments.router import router as assignments_router
from ecclesia.assignments.service import AssignmentService
from ecclesia.batches.router import router as batches_router
from ecclesia.batches.service import BatchService
from ecclesia.certificates.renderer import ReportLabCertificateRenderer
from ecclesia.certificates.router import router as certificates_router
from ecclesia.certificates.service import CertificateService
from ecclesia.config import Settings, get_settings
from ecclesia.core.context import get_request_id
from ecclesia.core.database import init_async_cassandra, shutdown_async_cassandra
from ecclesia.core.logging import configure_structlog, get_logger
from ecclesia.core.middleware import RequestContextMiddleware
from ecclesia.curriculum.router import router as curriculum_router
from ecclesia.curriculum.service import CurriculumService
from ecclesia.enrollments.progression import ProgressionService
from ecclesia.enrollments.reports import ReportService
from ecclesia.enrollments.router import router as enrollments_router
from ecclesia.enrollments.service import EnrollmentService
from ecclesia.health import router as health_router
from ecclesia.organizations.authorization import AuthorizationService
from ecclesia.organizations.router import router as organizations_router
from ecclesia.organizations.service import OrganizationService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings)

logger = get_logger(__name__)


def wire_services(app: FastAPI, session: Any, settings: Settings) -> None:
    """Build every domain service on one session and publish it on app.state."""
    keyspace = settings.cassandra_keyspace

    directory = OrganizationService(session=session, keyspace=keyspace)
    authorization = AuthorizationService(directory)
    curriculum = CurriculumService(session=session, keyspace=keyspace)
    batches = BatchService(
        session=session, keyspace=keyspace, authorization=authorization
    )
    enrollments = EnrollmentService(
        session=session,
        keyspace=keyspace,
        curriculum=curriculum,
        batches=batches,
        authorization=authorization,
    )

    app.state.cassandra_session = session
    app.state.organization_service = directory
    app.state.authorization_service = authorization
    app.state.curriculum_service = curriculum
    app.state.batch_service = batches
    app.state.enrollment_service = enrollments
    app.state.progression_service = ProgressionService(
        session=session,
        keyspace=keyspace,
        enrollments=enrollments,
        curriculum=curriculum,
    )
    app.state.assignment_service = AssignmentService(
        session=session,
        keyspace=keyspace,
        enrollments=enrollments,
        curriculum=curriculum,
    )
    app.state.certificate_service = CertificateService(
        session=session,
        keyspace=keyspace,
        enrollments=enrollments,
        directory=directory,
        renderer=ReportLabCertificateRenderer(),
        prefix=settings.foundation_certificate_prefix,
        location_name=settings.foundation_location_name,
    )
    app.state.report_service = ReportService(
        enrollments=enrollments, curriculum=curriculum
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Without a database the API still serves health checks; feature
    # dependencies answer 503
    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")
        wire_services(app, session, settings)
        logger.info("services_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays False so Starlette never renders stack traces
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Church organization directory and Foundation School API",
        debug=False,
        lifespan=lifespan,
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

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                or exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Details are logged; the response carries only the request id.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(organizations_router)
    app.include_router(curriculum_router)
    app.include_router(batches_router)
    app.include_router(enrollments_router)
    app.include_router(assignments_router)
    app.include_router(certificates_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Ecclesia API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ecclesia.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
