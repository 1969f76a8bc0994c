"""
SQLite implementation of repeat rule repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError

from lifeplanner.core.exceptions import (
    DuplicateError,
    NotFoundError,
    PlannerError,
    ValidationError,
)
from lifeplanner.core.logger import setup_logger
from lifeplanner.infrastructure.local.database import (
    RepeatORM,
    TaskORM,
    get_session_factory,
)
from lifeplanner.interfaces.repeat_repository import IRepeatRepository
from lifeplanner.models.enums import PeriodType, Priority, Weekday
from lifeplanner.models.repeat import (
    RepeatRule,
    RepeatRuleCreate,
    RepeatRuleUpdate,
    RuleTask,
    build_period,
)
from lifeplanner.utils.datetime_utils import ensure_utc, now_utc, to_naive_utc

logger = setup_logger(__name__)


class SqliteRepeatRepository(IRepeatRepository):
    """SQLite implementation of repeat rule repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    @staticmethod
    def _active_condition(now: datetime):
        return or_(
            RepeatORM.infinite_repeat.is_(True),
            RepeatORM.end_date >= to_naive_utc(now),
        )

    @staticmethod
    def _expired_condition(now: datetime):
        return and_(
            RepeatORM.infinite_repeat.is_(False),
            or_(RepeatORM.end_date.is_(None), RepeatORM.end_date < to_naive_utc(now)),
        )

    def _filters(
        self,
        user_id: str,
        period_type: Optional[PeriodType],
        active: Optional[bool],
        now: Optional[datetime],
    ) -> list:
        conditions = [TaskORM.user_id == user_id]
        if period_type is not None:
            conditions.append(RepeatORM.period_type == period_type.value)
        if active is not None:
            now = now or now_utc()
            conditions.append(
                self._active_condition(now) if active else self._expired_condition(now)
            )
        return conditions

    def _orm_to_model(self, repeat: RepeatORM, task: TaskORM) -> RepeatRule:
        """Convert a joined repeat/task row to the Pydantic model."""
        period_type = PeriodType(repeat.period_type)
        days = (
            [Weekday(day) for day in (repeat.repeat_days or [])]
            if period_type == PeriodType.WEEKLY
            else []
        )
        return RepeatRule(
            id=UUID(repeat.id),
            task_id=UUID(repeat.task_id),
            period=build_period(period_type, repeat.period_value or 1, days),
            end_date=ensure_utc(repeat.end_date),
            infinite_repeat=bool(repeat.infinite_repeat),
            task=RuleTask(
                id=UUID(task.id),
                name=task.name,
                description=task.description,
                priority=Priority(task.priority),
                board_id=task.board_id,
                list_id=task.list_id,
                owner_id=task.user_id,
                due_time=ensure_utc(task.due_time),
            ),
            created_at=ensure_utc(repeat.created_at),
            updated_at=ensure_utc(repeat.updated_at),
        )

    def _rows_to_models(
        self, rows, errors: Optional[list[PlannerError]] = None
    ) -> list[RepeatRule]:
        rules = []
        for repeat, task in rows:
            try:
                rules.append(self._orm_to_model(repeat, task))
            except (ValueError, PlannerError) as exc:
                # Rows with an unknown period type or weekday cannot be scheduled.
                logger.warning(f"Skipping unreadable repeat {repeat.id}: {exc}")
                if errors is not None:
                    errors.append(
                        ValidationError(
                            f"Repeat {repeat.id} for task '{task.name}' is unreadable: {exc}",
                            details={"repeat_id": repeat.id, "task_id": task.id},
                        )
                    )
        return rules

    async def _get_row(self, session, user_id: str, repeat_id: UUID):
        result = await session.execute(
            select(RepeatORM, TaskORM)
            .join(TaskORM, RepeatORM.task_id == TaskORM.id)
            .where(and_(RepeatORM.id == str(repeat_id), TaskORM.user_id == user_id))
        )
        return result.first()

    async def find_active(
        self, now: datetime, errors: Optional[list[PlannerError]] = None
    ) -> list[RepeatRule]:
        """Find all active rules across all users."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RepeatORM, TaskORM)
                .join(TaskORM, RepeatORM.task_id == TaskORM.id)
                .where(self._active_condition(now))
                .order_by(RepeatORM.created_at)
            )
            return self._rows_to_models(result.all(), errors)

    async def find_active_for_user(
        self,
        user_id: str,
        now: datetime,
        errors: Optional[list[PlannerError]] = None,
    ) -> list[RepeatRule]:
        """Find active rules whose task belongs to the user."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RepeatORM, TaskORM)
                .join(TaskORM, RepeatORM.task_id == TaskORM.id)
                .where(and_(TaskORM.user_id == user_id, self._active_condition(now)))
                .order_by(RepeatORM.created_at)
            )
            return self._rows_to_models(result.all(), errors)

    async def create(
        self, user_id: str, task_id: UUID, data: RepeatRuleCreate
    ) -> RepeatRule:
        """Attach a repeat rule to a task."""
        period = data.to_period()
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM).where(
                    and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)
                )
            )
            task = result.scalar_one_or_none()
            if not task:
                raise NotFoundError(f"Task {task_id} not found")

            orm = RepeatORM(
                id=str(uuid4()),
                task_id=task.id,
                period_type=period.kind,
                period_value=period.every,
                repeat_days=sorted(day.value for day in getattr(period, "repeat_days", ())),
                end_date=to_naive_utc(data.end_date),
                infinite_repeat=data.infinite_repeat,
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateError(f"Task {task_id} already has a repeat") from exc
            await session.refresh(orm)
            return self._orm_to_model(orm, task)

    async def get(self, user_id: str, repeat_id: UUID) -> Optional[RepeatRule]:
        """Get a rule by ID."""
        async with self._session_factory() as session:
            row = await self._get_row(session, user_id, repeat_id)
            return self._orm_to_model(*row) if row else None

    async def get_by_task(self, user_id: str, task_id: UUID) -> Optional[RepeatRule]:
        """Get the rule attached to a task."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RepeatORM, TaskORM)
                .join(TaskORM, RepeatORM.task_id == TaskORM.id)
                .where(and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id))
            )
            row = result.first()
            return self._orm_to_model(*row) if row else None

    async def list(
        self,
        user_id: str,
        period_type: Optional[PeriodType] = None,
        active: Optional[bool] = None,
        now: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[RepeatRule]:
        """List a user's rules, newest first."""
        async with self._session_factory() as session:
            query = (
                select(RepeatORM, TaskORM)
                .join(TaskORM, RepeatORM.task_id == TaskORM.id)
                .where(and_(*self._filters(user_id, period_type, active, now)))
                .order_by(RepeatORM.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            return self._rows_to_models(result.all())

    async def count(
        self,
        user_id: str,
        period_type: Optional[PeriodType] = None,
        active: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Count a user's rules."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(RepeatORM.id))
                .join(TaskORM, RepeatORM.task_id == TaskORM.id)
                .where(and_(*self._filters(user_id, period_type, active, now)))
            )
            return result.scalar_one()

    async def update(
        self, user_id: str, repeat_id: UUID, update: RepeatRuleUpdate
    ) -> RepeatRule:
        """Update a rule; the merged period is validated before saving."""
        async with self._session_factory() as session:
            row = await self._get_row(session, user_id, repeat_id)
            if not row:
                raise NotFoundError(f"Repeat {repeat_id} not found")
            orm, task = row

            period_type = update.period_type or PeriodType(orm.period_type)
            period_value = update.period_value or orm.period_value
            if update.repeat_days is not None:
                repeat_days = update.repeat_days
            elif period_type != PeriodType.WEEKLY:
                repeat_days = []
            else:
                repeat_days = [Weekday(day) for day in (orm.repeat_days or [])]
            period = build_period(period_type, period_value, repeat_days)

            orm.period_type = period.kind
            orm.period_value = period.every
            orm.repeat_days = sorted(day.value for day in getattr(period, "repeat_days", ()))
            if "end_date" in update.model_fields_set:
                orm.end_date = to_naive_utc(update.end_date)
            if update.infinite_repeat is not None:
                orm.infinite_repeat = update.infinite_repeat

            orm.updated_at = to_naive_utc(now_utc())
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm, task)

    async def delete(self, user_id: str, repeat_id: UUID) -> bool:
        """Delete a rule."""
        async with self._session_factory() as session:
            row = await self._get_row(session, user_id, repeat_id)
            if not row:
                return False

            await session.delete(row[0])
            await session.commit()
            return True
