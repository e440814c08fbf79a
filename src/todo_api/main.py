from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .logging_config import setup_logging
from .repositories import Repository, StorageError, StorageUnavailableError, build_repository, utcnow
from .routers import todos as todos_router
from .routers.todos import get_repository
from .schemas import HealthOut, ServiceInfo
from .settings import Settings, get_settings
from .startup import wait_for_storage

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service metadata and health endpoints."},
    {"name": "todos", "description": "CRUD operations for Todo items."},
]

TASK_REQUIRED = "Task is required"


def _validation_message(errors) -> str:
    for err in errors:
        if err.get("loc", ())[-1:] == ("task",):
            if err.get("type") == "string_too_long":
                return f"task: {err['msg']}"
            return TASK_REQUIRED
    return "Request validation failed"


ENDPOINTS = {
    "GET /todos": "Get all todos",
    "GET /todos/:id": "Get a specific todo",
    "POST /todos": "Create a new todo",
    "PUT /todos/:id": "Update a todo",
    "DELETE /todos/:id": "Delete a todo",
    "GET /health": "Health check",
}


async def _start(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    repo: Repository = app.state.repository

    await repo.open()
    outcome = await wait_for_storage(
        repo.ping,
        attempts=settings.startup_retries,
        delay=settings.startup_retry_delay,
    )
    app.state.startup = outcome
    if outcome.connected:
        if settings.db_init_schema:
            await repo.ensure_schema()
    elif settings.startup_fail_fast:
        raise StorageUnavailableError(
            f"database unreachable after {outcome.attempts} attempts: {outcome.last_error}"
        )
    else:
        logger.warning(
            "Database unreachable after %d attempts; serving anyway, /health will report it",
            outcome.attempts,
        )

    logger.info("Server is running on http://localhost:%d", settings.port)
    logger.info("Environment: %s", settings.environment)
    logger.info("Database: %s (%s)", settings.database_address, repo.name)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Open storage and wait for it before serving; close it on shutdown.
    """
    try:
        await _start(app)
        yield
    finally:
        await app.state.repository.close()


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        repository: Storage backend; chosen from ``settings`` when omitted.

    Returns:
        A configured FastAPI instance. Storage is opened by its lifespan.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Todo API",
        description="CRUD API for todo items backed by PostgreSQL or in-memory storage.",
        version=__version__,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repository or build_repository(settings)

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Report request validation errors as 400 with a consistent JSON body.

        Response format:
            {
                "error": "ValidationError",
                "message": "Task is required" | "task: <length error>"
                           | "Request validation failed",
                "detail": [... pydantic error details ...]
            }
        """
        errors = exc.errors()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "ValidationError",
                "message": _validation_message(errors),
                "detail": jsonable_encoder(errors),
            },
        )

    # PUBLIC_INTERFACE
    @app.get("/", response_model=ServiceInfo, summary="Service Info", tags=["health"])
    async def service_info() -> ServiceInfo:
        """
        Describe the service and list its endpoints.
        """
        return ServiceInfo(
            message="Welcome to Todo API!",
            version=__version__,
            environment=settings.environment,
            backend=app.state.repository.name,
            endpoints=ENDPOINTS,
        )

    # PUBLIC_INTERFACE
    @app.get(
        "/health",
        response_model=HealthOut,
        response_model_exclude_none=True,
        summary="Health Check",
        tags=["health"],
        responses={503: {"description": "Database unreachable", "model": HealthOut}},
    )
    async def health_check(repo: Repository = Depends(get_repository)):
        """
        Probe the storage backend with a trivial round-trip.

        Returns:
            200 with database 'connected', or 503 with database 'disconnected'
            and the failure detail.
        """
        try:
            await repo.ping()
        except StorageError as exc:
            body = HealthOut(
                status="unhealthy",
                timestamp=utcnow(),
                database="disconnected",
                error=str(exc),
            )
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=jsonable_encoder(body),
            )
        return HealthOut(status="healthy", timestamp=utcnow(), database="connected")

    app.include_router(todos_router.router)
    return app


app = create_app()
