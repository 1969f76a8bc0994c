"""
Repeat rule API endpoints.
"""

from datetime import datetime
from math import ceil
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from lifeplanner.api.deps import CurrentUser, RepeatRepo, Scheduler
from lifeplanner.core.exceptions import DuplicateError, NotFoundError, ValidationError
from lifeplanner.models.enums import PeriodType
from lifeplanner.models.repeat import (
    ProcessResult,
    RepeatRule,
    RepeatRuleCreate,
    RepeatRuleUpdate,
    UpcomingOccurrence,
)
from lifeplanner.utils.datetime_utils import ensure_utc, now_utc

router = APIRouter()


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class RepeatListResponse(BaseModel):
    repeats: list[RepeatRule]
    pagination: Pagination


class MostCommonType(BaseModel):
    type: str
    count: int


class RepeatStats(BaseModel):
    total_repeats: int
    active_repeats: int
    expired_repeats: int
    breakdown: dict[str, int]
    active_percentage: int
    most_common_type: MostCommonType


class UpcomingResponse(BaseModel):
    occurrences: list[UpcomingOccurrence]
    total_repeats: int
    upcoming_occurrences: int
    period_covered_days: int


_ACTIVE_FILTER = {"true": True, "false": False, "all": None}


def _ensure_future_end_date(
    end_date: Optional[datetime], infinite_repeat: Optional[bool], now: datetime
) -> None:
    """Finite repeats may not be given an end date in the past."""
    if infinite_repeat is True or end_date is None:
        return
    if ensure_utc(end_date) <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be in the future",
        )


@router.get("", response_model=RepeatListResponse)
async def list_repeats(
    user: CurrentUser,
    repo: RepeatRepo,
    period_type: Optional[PeriodType] = Query(None, description="Filter by period type"),
    active: Literal["true", "false", "all"] = Query(
        "true", description="Active, expired or all repeats"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> RepeatListResponse:
    """List the user's repeat configurations."""
    now = now_utc()
    active_filter = _ACTIVE_FILTER[active]
    repeats = await repo.list(
        user.id,
        period_type=period_type,
        active=active_filter,
        now=now,
        limit=limit,
        offset=(page - 1) * limit,
    )
    total_count = await repo.count(
        user.id, period_type=period_type, active=active_filter, now=now
    )
    total_pages = ceil(total_count / limit)
    return RepeatListResponse(
        repeats=repeats,
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


@router.get("/stats", response_model=RepeatStats)
async def get_repeat_stats(user: CurrentUser, repo: RepeatRepo) -> RepeatStats:
    """Summarise the user's repeat configurations."""
    now = now_utc()
    total = await repo.count(user.id)
    active = await repo.count(user.id, active=True, now=now)
    expired = await repo.count(user.id, active=False, now=now)

    breakdown: dict[str, int] = {}
    for period_type in PeriodType:
        count = await repo.count(user.id, period_type=period_type)
        if count:
            breakdown[period_type.value] = count

    most_common = MostCommonType(type="none", count=0)
    for type_name, count in breakdown.items():
        if count > most_common.count:
            most_common = MostCommonType(type=type_name, count=count)

    return RepeatStats(
        total_repeats=total,
        active_repeats=active,
        expired_repeats=expired,
        breakdown=breakdown,
        active_percentage=round(active / total * 100) if total else 0,
        most_common_type=most_common,
    )


@router.get("/upcoming", response_model=UpcomingResponse)
async def get_upcoming_occurrences(
    user: CurrentUser,
    repo: RepeatRepo,
    scheduler: Scheduler,
    task_id: Optional[UUID] = Query(None, description="Only this task's repeat"),
    days: int = Query(30, ge=1, le=365, description="Look ahead N days"),
    limit: int = Query(20, ge=1, le=100),
) -> UpcomingResponse:
    """List the next occurrence of each active repeat within the horizon."""
    now = now_utc()
    rules = await repo.find_active_for_user(user.id, now)
    if task_id is not None:
        rules = [rule for rule in rules if rule.task_id == task_id]

    occurrences = scheduler.calculator.upcoming(rules, now, days=days, limit=limit)
    return UpcomingResponse(
        occurrences=occurrences,
        total_repeats=len(rules),
        upcoming_occurrences=len(occurrences),
        period_covered_days=days,
    )


@router.post("/process", response_model=ProcessResult)
async def process_repeats(user: CurrentUser, scheduler: Scheduler) -> ProcessResult:
    """Create task instances for the user's due repeats right now."""
    return await scheduler.process_for_user(user.id)


@router.get("/task/{task_id}", response_model=Optional[RepeatRule])
async def get_task_repeat(
    task_id: UUID,
    user: CurrentUser,
    repo: RepeatRepo,
) -> Optional[RepeatRule]:
    """Get the repeat configuration of a task (null if it does not repeat)."""
    return await repo.get_by_task(user.id, task_id)


@router.post(
    "/task/{task_id}", response_model=RepeatRule, status_code=status.HTTP_201_CREATED
)
async def create_repeat(
    task_id: UUID,
    payload: RepeatRuleCreate,
    user: CurrentUser,
    repo: RepeatRepo,
) -> RepeatRule:
    """Attach a repeat configuration to a task."""
    _ensure_future_end_date(payload.end_date, payload.infinite_repeat, now_utc())
    try:
        return await repo.create(user.id, task_id, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/{repeat_id}", response_model=RepeatRule)
async def get_repeat(
    repeat_id: UUID,
    user: CurrentUser,
    repo: RepeatRepo,
) -> RepeatRule:
    """Get a repeat configuration by ID."""
    result = await repo.get(user.id, repeat_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repeat {repeat_id} not found",
        )
    return result


@router.put("/{repeat_id}", response_model=RepeatRule)
async def update_repeat(
    repeat_id: UUID,
    update: RepeatRuleUpdate,
    user: CurrentUser,
    repo: RepeatRepo,
) -> RepeatRule:
    """Update a repeat configuration."""
    if update.infinite_repeat is False:
        _ensure_future_end_date(update.end_date, False, now_utc())
    try:
        return await repo.update(user.id, repeat_id, update)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{repeat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_repeat(
    repeat_id: UUID,
    user: CurrentUser,
    repo: RepeatRepo,
):
    """Delete a repeat configuration. The task itself is kept."""
    deleted = await repo.delete(user.id, repeat_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repeat {repeat_id} not found",
        )
