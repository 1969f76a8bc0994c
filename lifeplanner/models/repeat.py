"""
Repeat rule models.

A repeat rule is attached to exactly one task and describes when new
instances of that task should be generated. The period is a closed tagged
union so that, for example, repeat days can only exist on weekly rules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Iterable, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from lifeplanner.core.exceptions import ValidationError
from lifeplanner.models.enums import PeriodType, Priority, Weekday
from lifeplanner.utils.datetime_utils import ensure_utc

MAX_PERIOD_VALUE = 365


class DailyPeriod(BaseModel):
    """Every N days."""

    kind: Literal["daily"] = "daily"
    every: int = Field(1, ge=1, le=MAX_PERIOD_VALUE)


class WeeklyPeriod(BaseModel):
    """Every N weeks, or on explicit weekdays."""

    kind: Literal["weekly"] = "weekly"
    every: int = Field(1, ge=1, le=MAX_PERIOD_VALUE)
    repeat_days: frozenset[Weekday] = Field(
        default_factory=frozenset,
        description="Empty means every Nth week on the anchor's weekday",
    )


class MonthlyPeriod(BaseModel):
    """Every N calendar months."""

    kind: Literal["monthly"] = "monthly"
    every: int = Field(1, ge=1, le=MAX_PERIOD_VALUE)


class YearlyPeriod(BaseModel):
    """Every N calendar years."""

    kind: Literal["yearly"] = "yearly"
    every: int = Field(1, ge=1, le=MAX_PERIOD_VALUE)


Period = Annotated[
    Union[DailyPeriod, WeeklyPeriod, MonthlyPeriod, YearlyPeriod],
    Field(discriminator="kind"),
]


def build_period(
    period_type: PeriodType,
    every: int = 1,
    repeat_days: Optional[Iterable[Weekday]] = None,
) -> Period:
    """
    Build a period variant from flat fields.

    Raises:
        ValidationError: If repeat days are given for a non-weekly period
            or the multiplier is out of range
    """
    days = frozenset(repeat_days or ())
    if days and period_type != PeriodType.WEEKLY:
        raise ValidationError("Repeat days are only allowed on weekly repeats")
    if not 1 <= every <= MAX_PERIOD_VALUE:
        raise ValidationError(
            f"Period value must be between 1 and {MAX_PERIOD_VALUE}"
        )

    if period_type == PeriodType.DAILY:
        return DailyPeriod(every=every)
    if period_type == PeriodType.WEEKLY:
        return WeeklyPeriod(every=every, repeat_days=days)
    if period_type == PeriodType.MONTHLY:
        return MonthlyPeriod(every=every)
    if period_type == PeriodType.YEARLY:
        return YearlyPeriod(every=every)
    raise ValidationError(f"Unknown period type: {period_type}")


class RuleTask(BaseModel):
    """Fields of the owning task needed to generate new instances."""

    id: UUID
    name: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    board_id: Optional[str] = None
    list_id: Optional[str] = None
    owner_id: str
    due_time: Optional[datetime] = None


class RepeatRuleCreate(BaseModel):
    """Attach a repeat rule to a task."""

    period_type: PeriodType
    period_value: int = Field(1, ge=1, le=MAX_PERIOD_VALUE)
    repeat_days: list[Weekday] = Field(default_factory=list)
    end_date: Optional[datetime] = None
    infinite_repeat: bool = False

    def to_period(self) -> Period:
        return build_period(self.period_type, self.period_value, self.repeat_days)


class RepeatRuleUpdate(BaseModel):
    """Update repeat rule fields."""

    period_type: Optional[PeriodType] = None
    period_value: Optional[int] = Field(None, ge=1, le=MAX_PERIOD_VALUE)
    repeat_days: Optional[list[Weekday]] = None
    end_date: Optional[datetime] = None
    infinite_repeat: Optional[bool] = None


class RepeatRule(BaseModel):
    """Repeat rule with its owning task snapshot."""

    id: UUID
    task_id: UUID
    period: Period
    end_date: Optional[datetime] = None
    infinite_repeat: bool = False
    task: RuleTask
    created_at: datetime
    updated_at: datetime

    @property
    def period_type(self) -> PeriodType:
        return PeriodType(self.period.kind)

    def is_active(self, now: datetime) -> bool:
        """A rule is active if it repeats forever or its end date is not yet past."""
        if self.infinite_repeat:
            return True
        if self.end_date is None:
            return False
        return ensure_utc(self.end_date) >= ensure_utc(now)


class ProcessResult(BaseModel):
    """Outcome of one sweep over a set of repeat rules."""

    processed_count: int = 0
    created_count: int = 0
    failed_count: int = 0
    created_task_names: list[str] = Field(default_factory=list)


class UpcomingOccurrence(BaseModel):
    """Next scheduled occurrence of one repeat rule."""

    repeat_id: UUID
    task_id: UUID
    task_name: str
    priority: Priority
    board_id: Optional[str] = None
    next_occurrence: datetime
    period_type: PeriodType
    period_value: int
