"""
Integration tests for the repeat and task repositories.

Runs against an in-memory SQLite database.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from lifeplanner.core.exceptions import DuplicateError, NotFoundError, ValidationError
from lifeplanner.infrastructure.local.database import RepeatORM
from lifeplanner.infrastructure.local.repeat_repository import SqliteRepeatRepository
from lifeplanner.infrastructure.local.task_repository import SqliteTaskRepository
from lifeplanner.models.enums import PeriodType, Weekday
from lifeplanner.models.repeat import (
    DailyPeriod,
    MonthlyPeriod,
    RepeatRuleCreate,
    RepeatRuleUpdate,
    WeeklyPeriod,
)
from lifeplanner.models.task import TaskCreate

UTC = timezone.utc
NOW = datetime(2024, 1, 3, 10, 0, tzinfo=UTC)


async def _create_task(session_factory, user_id, name="Water plants", due_time=None):
    repo = SqliteTaskRepository(session_factory=session_factory)
    return await repo.create(
        user_id,
        TaskCreate(name=name, due_time=due_time or datetime(2024, 1, 1, 9, 0, tzinfo=UTC)),
    )


@pytest.mark.asyncio
async def test_create_weekly_repeat(session_factory, test_user_id):
    task = await _create_task(session_factory, test_user_id)
    repo = SqliteRepeatRepository(session_factory=session_factory)

    created = await repo.create(
        test_user_id,
        task.id,
        RepeatRuleCreate(
            period_type=PeriodType.WEEKLY,
            repeat_days=[Weekday.WEDNESDAY, Weekday.MONDAY],
            infinite_repeat=True,
        ),
    )

    assert created.task_id == task.id
    assert isinstance(created.period, WeeklyPeriod)
    assert created.period.repeat_days == frozenset({Weekday.MONDAY, Weekday.WEDNESDAY})
    assert created.task.name == "Water plants"
    assert created.task.owner_id == test_user_id
    assert created.task.due_time == datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_create_rejects_days_on_daily_repeat(session_factory, test_user_id):
    task = await _create_task(session_factory, test_user_id)
    repo = SqliteRepeatRepository(session_factory=session_factory)

    with pytest.raises(ValidationError):
        await repo.create(
            test_user_id,
            task.id,
            RepeatRuleCreate(period_type=PeriodType.DAILY, repeat_days=[Weekday.MONDAY]),
        )


@pytest.mark.asyncio
async def test_create_for_other_users_task_not_found(session_factory, test_user_id):
    task = await _create_task(session_factory, "someone_else")
    repo = SqliteRepeatRepository(session_factory=session_factory)

    with pytest.raises(NotFoundError):
        await repo.create(
            test_user_id, task.id, RepeatRuleCreate(period_type=PeriodType.DAILY)
        )


@pytest.mark.asyncio
async def test_one_repeat_per_task(session_factory, test_user_id):
    task = await _create_task(session_factory, test_user_id)
    repo = SqliteRepeatRepository(session_factory=session_factory)
    data = RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)

    await repo.create(test_user_id, task.id, data)
    with pytest.raises(DuplicateError):
        await repo.create(test_user_id, task.id, data)


@pytest.mark.asyncio
async def test_find_active_filters_expired_and_open_ended(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    forever = await _create_task(session_factory, test_user_id, "Forever")
    running = await _create_task(session_factory, test_user_id, "Running")
    expired = await _create_task(session_factory, test_user_id, "Expired")
    no_end = await _create_task(session_factory, test_user_id, "No end")

    await repo.create(
        test_user_id,
        forever.id,
        RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True),
    )
    await repo.create(
        test_user_id,
        running.id,
        RepeatRuleCreate(period_type=PeriodType.DAILY, end_date=NOW + timedelta(days=5)),
    )
    await repo.create(
        test_user_id,
        expired.id,
        RepeatRuleCreate(period_type=PeriodType.DAILY, end_date=NOW - timedelta(days=1)),
    )
    await repo.create(
        test_user_id, no_end.id, RepeatRuleCreate(period_type=PeriodType.DAILY)
    )

    active = await repo.find_active(NOW)

    assert {rule.task.name for rule in active} == {"Forever", "Running"}
    assert await repo.count(test_user_id, active=True, now=NOW) == 2
    assert await repo.count(test_user_id, active=False, now=NOW) == 2
    assert await repo.count(test_user_id) == 4


@pytest.mark.asyncio
async def test_find_active_for_user_scopes_by_owner(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    mine = await _create_task(session_factory, test_user_id, "Mine")
    theirs = await _create_task(session_factory, "someone_else", "Theirs")
    data = RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)
    await repo.create(test_user_id, mine.id, data)
    await repo.create("someone_else", theirs.id, data)

    rules = await repo.find_active_for_user(test_user_id, NOW)

    assert [rule.task.name for rule in rules] == ["Mine"]
    assert len(await repo.find_active(NOW)) == 2


@pytest.mark.asyncio
async def test_find_active_reports_unreadable_rules(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    good = await _create_task(session_factory, test_user_id, "Good")
    broken = await _create_task(session_factory, test_user_id, "Broken")
    await repo.create(
        test_user_id,
        good.id,
        RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True),
    )
    async with session_factory() as session:
        session.add(
            RepeatORM(task_id=str(broken.id), period_type="hourly", infinite_repeat=True)
        )
        await session.commit()

    errors = []
    rules = await repo.find_active(NOW, errors=errors)

    assert [rule.task.name for rule in rules] == ["Good"]
    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert errors[0].details["task_id"] == str(broken.id)
    assert len(await repo.find_active_for_user(test_user_id, NOW)) == 1


@pytest.mark.asyncio
async def test_list_filters_by_period_type(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    daily = await _create_task(session_factory, test_user_id, "Daily")
    monthly = await _create_task(session_factory, test_user_id, "Monthly")
    await repo.create(
        test_user_id, daily.id, RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)
    )
    await repo.create(
        test_user_id,
        monthly.id,
        RepeatRuleCreate(period_type=PeriodType.MONTHLY, infinite_repeat=True),
    )

    rules = await repo.list(test_user_id, period_type=PeriodType.MONTHLY)

    assert len(rules) == 1
    assert isinstance(rules[0].period, MonthlyPeriod)


@pytest.mark.asyncio
async def test_update_switching_away_from_weekly_clears_days(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    task = await _create_task(session_factory, test_user_id)
    created = await repo.create(
        test_user_id,
        task.id,
        RepeatRuleCreate(
            period_type=PeriodType.WEEKLY, repeat_days=[Weekday.FRIDAY], infinite_repeat=True
        ),
    )

    updated = await repo.update(
        test_user_id,
        created.id,
        RepeatRuleUpdate(period_type=PeriodType.DAILY, period_value=2),
    )

    assert updated.period == DailyPeriod(every=2)
    assert updated.infinite_repeat is True


@pytest.mark.asyncio
async def test_update_rejects_days_on_non_weekly(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    task = await _create_task(session_factory, test_user_id)
    created = await repo.create(
        test_user_id, task.id, RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)
    )

    with pytest.raises(ValidationError):
        await repo.update(
            test_user_id, created.id, RepeatRuleUpdate(repeat_days=[Weekday.MONDAY])
        )


@pytest.mark.asyncio
async def test_update_end_date_and_finite(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    task = await _create_task(session_factory, test_user_id)
    created = await repo.create(
        test_user_id, task.id, RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)
    )
    end_date = datetime(2030, 1, 1, tzinfo=UTC)

    updated = await repo.update(
        test_user_id,
        created.id,
        RepeatRuleUpdate(infinite_repeat=False, end_date=end_date),
    )

    assert updated.infinite_repeat is False
    assert updated.end_date == end_date


@pytest.mark.asyncio
async def test_update_missing_repeat(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)

    with pytest.raises(NotFoundError):
        await repo.update(test_user_id, uuid4(), RepeatRuleUpdate(period_value=2))


@pytest.mark.asyncio
async def test_get_by_task_and_delete(session_factory, test_user_id):
    repo = SqliteRepeatRepository(session_factory=session_factory)
    task = await _create_task(session_factory, test_user_id)
    created = await repo.create(
        test_user_id, task.id, RepeatRuleCreate(period_type=PeriodType.DAILY, infinite_repeat=True)
    )

    assert (await repo.get_by_task(test_user_id, task.id)).id == created.id
    assert await repo.get("someone_else", created.id) is None

    assert await repo.delete(test_user_id, created.id) is True
    assert await repo.get(test_user_id, created.id) is None
    assert await repo.delete(test_user_id, created.id) is False

    task_repo = SqliteTaskRepository(session_factory=session_factory)
    assert await task_repo.get(test_user_id, task.id) is not None
