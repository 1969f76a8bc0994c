"""
SQLite implementation of Task repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError

from lifeplanner.core.exceptions import DuplicateError
from lifeplanner.infrastructure.local.database import TaskORM, get_session_factory
from lifeplanner.interfaces.task_repository import ITaskRepository
from lifeplanner.models.enums import Priority, TaskStatus
from lifeplanner.models.task import Task, TaskCreate
from lifeplanner.utils.datetime_utils import ensure_utc, to_naive_utc


class SqliteTaskRepository(ITaskRepository):
    """SQLite implementation of task repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TaskORM) -> Task:
        """Convert ORM object to Pydantic model."""
        return Task(
            id=UUID(orm.id),
            owner_id=orm.user_id,
            name=orm.name,
            description=orm.description,
            priority=Priority(orm.priority),
            board_id=orm.board_id,
            list_id=orm.list_id,
            due_time=ensure_utc(orm.due_time),
            completed=bool(orm.completed),
            status=TaskStatus(orm.status),
            new_task=bool(orm.new_task),
            repeat_id=UUID(orm.repeat_id) if orm.repeat_id else None,
            occurrence_at=ensure_utc(orm.occurrence_at),
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def create(self, user_id: str, task: TaskCreate) -> Task:
        """Create a new task."""
        async with self._session_factory() as session:
            orm = TaskORM(
                id=str(uuid4()),
                user_id=user_id,
                name=task.name,
                description=task.description,
                priority=task.priority.value,
                board_id=task.board_id,
                list_id=task.list_id,
                due_time=to_naive_utc(task.due_time),
                completed=task.completed,
                status=task.status.value,
                new_task=task.new_task,
                repeat_id=str(task.repeat_id) if task.repeat_id else None,
                occurrence_at=to_naive_utc(task.occurrence_at),
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateError(
                    f"Task for repeat {task.repeat_id} at {task.occurrence_at} already exists",
                    details={"repeat_id": str(task.repeat_id)},
                ) from exc
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM).where(
                    and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list(self, user_id: str, limit: int = 100, offset: int = 0) -> list[Task]:
        """List tasks, newest first."""
        async with self._session_factory() as session:
            query = (
                select(TaskORM)
                .where(TaskORM.user_id == user_id)
                .order_by(TaskORM.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def find_similar(
        self,
        user_id: str,
        name_fragment: str,
        window_start: datetime,
        window_end: datetime,
    ) -> Optional[Task]:
        """Find a task whose name contains the fragment and is due strictly inside the window."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(
                    and_(
                        TaskORM.user_id == user_id,
                        TaskORM.name.contains(name_fragment, autoescape=True),
                        TaskORM.due_time > to_naive_utc(window_start),
                        TaskORM.due_time < to_naive_utc(window_end),
                    )
                )
                .limit(1)
            )
            orm = result.scalars().first()
            return self._orm_to_model(orm) if orm else None
