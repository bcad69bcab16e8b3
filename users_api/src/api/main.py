from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.core.logging import configure_logging, request_context
from src.core.settings import AppSettings, get_app_settings
from src.db.seed import seed_all
from src.repositories.base import UserRepository
from src.repositories.errors import RepositoryError, StorageError
from src.repositories.factory import build_repository
from src.repositories.sql import SqlUserRepository
from src.schemas.common import ErrorInfo, ErrorResponse

# Routers
from src.api.routes.health import router as health_router
from src.api.routes.users import router as users_router

logger = logging.getLogger(__name__)

_WORKER_COUNTER = itertools.count(1)

openapi_tags = [
    {"name": "Health", "description": "Liveness probe."},
    {"name": "Users", "description": "User record CRUD."},
]


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RepositoryError)
    async def repository_exception_handler(request: Request, exc: RepositoryError):
        """
        Map repository error kinds to HTTP status codes.

        Storage faults are logged as errors; data-consistency outcomes
        (not found, already exists) are ordinary and logged at info level.
        """
        if isinstance(exc, StorageError):
            logger.error("Storage fault on %s %s: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s: %s", exc.error_type, exc.message)
        return _build_error_response(
            request=request,
            status_code=exc.status_code,
            error_type=exc.error_type,
            message=exc.message,
            details=exc.details or None,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """
        Global handler for HTTPException to produce a standardized error envelope.
        """
        detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
        return _build_error_response(
            request=request,
            status_code=exc.status_code,
            error_type="http_error",
            message=str(detail),
            details=None if isinstance(exc.detail, str) else exc.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """
        Request validation errors. A malformed path id is a bad request (400);
        an invalid body is unprocessable (422).
        """
        errors = jsonable_encoder(exc.errors())
        path_only = bool(errors) and all(e.get("loc", ("",))[0] == "path" for e in errors)
        if path_only:
            logger.warning("Invalid path on %s %s", request.method, request.url.path)
        return _build_error_response(
            request=request,
            status_code=400 if path_only else 422,
            error_type="validation_error",
            message="Request validation failed",
            details=errors,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler to avoid leaking stack traces and to return a structured error.
        """
        logger.exception("Unhandled error processing request")
        return _build_error_response(
            request=request,
            status_code=500,
            error_type="internal_error",
            message="An unexpected error occurred",
            details=None,
        )


# PUBLIC_INTERFACE
def create_app(
    repository: Optional[UserRepository] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters:
      repository: backend to serve; when omitted one is built from settings
        at startup and closed at shutdown.
      settings: application settings; read from the environment if omitted.
    """
    settings = settings or get_app_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.worker_id = next(_WORKER_COUNTER)
    app.state.repository = repository
    app.state.owns_repository = repository is None

    # CORS - avoid wildcard with credentials
    cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
    if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
        logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
        cors_allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=cors_allow_credentials,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """
        Enrich request context with a correlation_id for logging and error responses.
        Adds 'X-Correlation-ID' to every response.
        """
        corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
        request.state.correlation_id = corr

        with request_context(corr):
            logger.info("Incoming request %s %s", request.method, request.url.path)
            response = await call_next(request)

        response.headers["X-Correlation-ID"] = corr
        return response

    _register_exception_handlers(app)

    @app.on_event("startup")
    async def on_startup() -> None:
        """
        Build the repository (unless one was injected), create the schema for
        the relational backend and optionally seed the default user.
        """
        if app.state.repository is None:
            app.state.repository = build_repository(settings)
        repo: UserRepository = app.state.repository
        logger.info(
            "Serving users from the %s repository (environment: %s)",
            repo.backend_name,
            settings.ENVIRONMENT or "unset",
        )

        if isinstance(repo, SqlUserRepository) and settings.CREATE_SCHEMA_ON_STARTUP:
            try:
                await repo.create_schema()
            except StorageError as exc:
                # Keep serving; operations report StorageError until the database is reachable.
                logger.error("Schema creation failed: %s", exc.message)

        if settings.AUTO_SEED:
            try:
                created = await seed_all(repo)
                logger.info("Seeding completed (%d created).", created)
            except StorageError as exc:
                logger.error("Seeding failed: %s", exc.message)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        repo = app.state.repository
        if repo is not None and app.state.owns_repository:
            await repo.close()

    api_v1 = APIRouter(prefix="/v1")
    api_v1.include_router(users_router)
    app.include_router(api_v1)
    app.include_router(health_router)
    return app


app = create_app()
