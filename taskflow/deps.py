"""Dependency injection helpers for FastAPI."""

from functools import lru_cache

from fastapi import HTTPException, Request, status

from .config import Settings, settings
from .services.task_store import TaskStore


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return settings


def get_task_store(request: Request) -> TaskStore:
    """Get the task store owned by the running application.

    Raises:
        HTTPException: If the application has not finished starting up
    """
    store = getattr(request.app.state, "task_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task store not initialized",
        )
    return store
