"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

from lifeplanner.core.config import get_settings
from lifeplanner.interfaces.repeat_repository import IRepeatRepository
from lifeplanner.interfaces.task_repository import ITaskRepository
from lifeplanner.services.repeat_scheduler import RepeatScheduler


class User(BaseModel):
    """Authenticated user as seen by the API."""

    id: str


DEV_USER_ID = "dev_user"


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_task_repository() -> ITaskRepository:
    """Get task repository instance."""
    from lifeplanner.infrastructure.local.task_repository import SqliteTaskRepository

    return SqliteTaskRepository()


@lru_cache()
def get_repeat_repository() -> IRepeatRepository:
    """Get repeat rule repository instance."""
    from lifeplanner.infrastructure.local.repeat_repository import SqliteRepeatRepository

    return SqliteRepeatRepository()


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_repeat_scheduler() -> RepeatScheduler:
    """Get the process-wide repeat scheduler."""
    return RepeatScheduler.from_settings(
        get_settings(),
        repeat_repo=get_repeat_repository(),
        task_repo=get_task_repository(),
    )


# ===========================================
# Auth
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """
    Get current user.

    Authentication is handled upstream. When AUTH_ENABLED is off every request
    runs as the development user; otherwise the bearer token is the user ID.
    """
    if not get_settings().AUTH_ENABLED:
        return User(id=DEV_USER_ID)

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    return User(id=token)


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
RepeatRepo = Annotated[IRepeatRepository, Depends(get_repeat_repository)]
Scheduler = Annotated[RepeatScheduler, Depends(get_repeat_scheduler)]
