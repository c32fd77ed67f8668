"""FastAPI main application with app factory and route configuration."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .deps import get_settings
from .routes import tasks
from .schemas import HealthResponse
from .services.persistence import DebouncedWriter, JsonFileGateway
from .services.projector import use_system_collation
from .services.reminders import ReminderScanner
from .services.task_store import TaskStore
from .utils.dates import local_now
from .utils.logging import log_shutdown_info, log_startup_info, setup_logging

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> Tuple[TaskStore, DebouncedWriter]:
    """Create the task store, preloaded from disk and wired to a debounced writer.

    Args:
        settings: Application settings

    Returns:
        The task store and the writer that persists it
    """
    writer = DebouncedWriter(JsonFileGateway(settings.storage_path), delay=settings.save_delay)
    store = TaskStore(writer.load(), persistence=writer)
    return store, writer


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings)
    log_startup_info(settings)
    use_system_collation()

    store, writer = build_store(settings)
    app.state.task_store = store
    app.state.writer = writer

    scanner = ReminderScanner(store, window=settings.reminder_window)
    reminder_task = asyncio.create_task(scanner.run(settings.reminder_interval))
    logger.info("Application startup completed successfully")

    yield

    # Shutdown
    reminder_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await reminder_task

    if writer.flush():
        logger.info("Flushed pending task changes")
    app.state.task_store = None
    log_shutdown_info()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment-derived ones

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="TaskFlow",
        description="Task manager with categories, tags, subtasks, notes, undo and statistics",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.task_store = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests."""
        logger.debug(f"Request: {request.method} {request.url}")

        response = await call_next(request)

        logger.debug(
            f"Response: {response.status_code} for {request.method} {request.url}"
        )
        return response

    # Custom exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with proper logging."""
        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail} for {request.method} {request.url}"
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle request validation errors with detailed information."""
        logger.warning(
            f"Validation error for {request.method} {request.url}: {exc.errors()}"
        )

        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation error",
                "details": jsonable_errors(exc),
                "status_code": 422,
                "path": str(request.url),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            f"Unexpected error for {request.method} {request.url}: {str(exc)}",
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "status_code": 500,
                "path": str(request.url),
            },
        )

    @app.get("/healthz", tags=["health"], response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint for monitoring."""
        store: Optional[TaskStore] = request.app.state.task_store

        return HealthResponse(
            status="healthy" if store is not None else "degraded",
            timestamp=local_now(),
            task_count=len(store) if store is not None else None,
        )

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "TaskFlow API",
            "version": "1.0.0",
            "docs_url": "/docs",
            "health_check": "/healthz",
            "endpoints": {
                "tasks": "/tasks/",
                "statistics": "/tasks/stats/",
                "due_soon": "/tasks/due-soon/",
                "export": "/tasks/export/",
                "import": "/tasks/import/",
                "undo": "/tasks/undo/",
            },
        }

    app.include_router(tasks.router)

    logger.info("FastAPI application created and configured")

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors reduced to JSON-safe fields."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.app_host, port=settings.app_port)


# Create the app instance
app = create_app()


if __name__ == "__main__":
    run()
