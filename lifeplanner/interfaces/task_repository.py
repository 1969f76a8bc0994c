"""
Task repository interface.

Defines the contract for task persistence operations used by the repeat engine.
Implementations: SQLite
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from lifeplanner.models.task import Task, TaskCreate


class ITaskRepository(ABC):
    """Abstract interface for task persistence."""

    @abstractmethod
    async def create(self, user_id: str, task: TaskCreate) -> Task:
        """
        Create a new task.

        Args:
            user_id: Owner user ID
            task: Task creation data

        Returns:
            Created task with generated ID and timestamps

        Raises:
            DuplicateError: If a task already exists for the same
                (repeat_id, occurrence_at) pair
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """
        Get a task by ID.

        Args:
            user_id: Owner user ID
            task_id: Task ID

        Returns:
            Task if found, None otherwise
        """
        pass

    @abstractmethod
    async def list(self, user_id: str, limit: int = 100, offset: int = 0) -> list[Task]:
        """List a user's tasks, newest first."""
        pass

    @abstractmethod
    async def find_similar(
        self,
        user_id: str,
        name_fragment: str,
        window_start: datetime,
        window_end: datetime,
    ) -> Optional[Task]:
        """
        Find a task that looks like an existing instance of a repeat.

        Args:
            user_id: Owner user ID
            name_fragment: Substring the task name must contain
            window_start: Earliest due time (exclusive)
            window_end: Latest due time (exclusive)

        Returns:
            First matching task, or None
        """
        pass
