"""
Occurrence calculator.

Computes when a repeat rule fires relative to its anchor time (the due time
of the task the rule is attached to). Every computation restarts from the
anchor: the k-th occurrence is anchor + k * step, so calendar clamping in
short months never accumulates.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from lifeplanner.models.enums import Weekday
from lifeplanner.models.repeat import (
    DailyPeriod,
    MonthlyPeriod,
    Period,
    RepeatRule,
    UpcomingOccurrence,
    WeeklyPeriod,
    YearlyPeriod,
)
from lifeplanner.utils.datetime_utils import add_months, add_years, ensure_utc

DEFAULT_WEEKLY_SCAN_DAYS = 14


def _shift(base: datetime, period: Period, steps: int) -> datetime:
    """Return the occurrence `steps` periods after `base`."""
    if isinstance(period, DailyPeriod):
        return base + timedelta(days=period.every * steps)
    if isinstance(period, WeeklyPeriod):
        return base + timedelta(days=7 * period.every * steps)
    if isinstance(period, MonthlyPeriod):
        return add_months(base, period.every * steps)
    if isinstance(period, YearlyPeriod):
        return add_years(base, period.every * steps)
    raise TypeError(f"Unsupported period: {period!r}")


def _estimate_steps(base: datetime, period: Period, now: datetime) -> int:
    """Rough number of whole periods between base and now (never overshoots by much)."""
    if isinstance(period, DailyPeriod):
        return (now - base).days // period.every
    if isinstance(period, WeeklyPeriod):
        return (now - base).days // (7 * period.every)
    if isinstance(period, MonthlyPeriod):
        months = (now.year - base.year) * 12 + (now.month - base.month)
        return months // period.every
    if isinstance(period, YearlyPeriod):
        return (now.year - base.year) // period.every
    raise TypeError(f"Unsupported period: {period!r}")


def _at_time_of(day: datetime, reference: datetime) -> datetime:
    """Move `day` to the time-of-day of `reference`, keeping it on the anchor's grid."""
    return day.replace(
        hour=reference.hour,
        minute=reference.minute,
        second=reference.second,
        microsecond=reference.microsecond,
    )


def _weekday_numbers(days: Iterable[Weekday]) -> set[int]:
    return {day.index for day in days}


class OccurrenceCalculator:
    """Pure occurrence arithmetic for repeat rules. All datetimes are UTC."""

    def __init__(self, weekly_scan_days: int = DEFAULT_WEEKLY_SCAN_DAYS):
        self.weekly_scan_days = weekly_scan_days

    def next_occurrence(
        self,
        rule: RepeatRule,
        anchor: Optional[datetime],
        now: datetime,
    ) -> Optional[datetime]:
        """
        Calculate the first occurrence strictly after `now`.

        Args:
            rule: Repeat rule
            anchor: Anchor time; `now` is used when the task has no due time
            now: Current time

        Returns:
            Next occurrence, or None if the rule is inactive, the occurrence
            falls after the rule's end date, or the period is unsupported
        """
        now = ensure_utc(now)
        if not rule.is_active(now):
            return None

        base = ensure_utc(anchor) if anchor else now
        period = rule.period

        if isinstance(period, WeeklyPeriod) and period.repeat_days:
            candidate = self._next_weekday_occurrence(now, period.repeat_days, base)
        elif isinstance(period, (DailyPeriod, WeeklyPeriod, MonthlyPeriod, YearlyPeriod)):
            candidate = self._first_after(base, period, now)
        else:
            return None

        if self._past_end(rule, candidate):
            return None
        return candidate

    def latest_due_occurrence(
        self,
        rule: RepeatRule,
        anchor: Optional[datetime],
        now: datetime,
    ) -> Optional[datetime]:
        """
        Calculate the most recent occurrence that has fallen due.

        The occurrence must be strictly after the anchor (the anchor itself is
        the original task) and at or before `now`. Without an anchor nothing
        has fallen due yet.
        """
        now = ensure_utc(now)
        if anchor is None or not rule.is_active(now):
            return None

        base = ensure_utc(anchor)
        period = rule.period

        if isinstance(period, WeeklyPeriod) and period.repeat_days:
            candidate = self._previous_weekday_occurrence(now, period.repeat_days, base)
            if candidate is None or candidate <= base:
                return None
        elif isinstance(period, (DailyPeriod, WeeklyPeriod, MonthlyPeriod, YearlyPeriod)):
            candidate = self._last_at_or_before(base, period, now)
            if candidate is None:
                return None
        else:
            return None

        if self._past_end(rule, candidate):
            return None
        return candidate

    def upcoming(
        self,
        rules: Iterable[RepeatRule],
        now: datetime,
        days: int = 30,
        limit: int = 20,
    ) -> list[UpcomingOccurrence]:
        """List next occurrences within `days` of `now`, soonest first."""
        now = ensure_utc(now)
        horizon = now + timedelta(days=days)
        occurrences = []
        for rule in rules:
            next_at = self.next_occurrence(rule, rule.task.due_time, now)
            if next_at is None or next_at > horizon:
                continue
            occurrences.append(
                UpcomingOccurrence(
                    repeat_id=rule.id,
                    task_id=rule.task.id,
                    task_name=rule.task.name,
                    priority=rule.task.priority,
                    board_id=rule.task.board_id,
                    next_occurrence=next_at,
                    period_type=rule.period_type,
                    period_value=rule.period.every,
                )
            )
        occurrences.sort(key=lambda item: item.next_occurrence)
        return occurrences[:limit]

    @staticmethod
    def _past_end(rule: RepeatRule, candidate: datetime) -> bool:
        if rule.infinite_repeat or rule.end_date is None:
            return False
        return candidate > ensure_utc(rule.end_date)

    @staticmethod
    def _first_after(base: datetime, period: Period, now: datetime) -> datetime:
        """Smallest k >= 0 such that base + k periods > now."""
        if base > now:
            return base
        steps = max(_estimate_steps(base, period, now), 0)
        while steps > 0 and _shift(base, period, steps) > now:
            steps -= 1
        while _shift(base, period, steps) <= now:
            steps += 1
        return _shift(base, period, steps)

    @staticmethod
    def _last_at_or_before(base: datetime, period: Period, now: datetime) -> Optional[datetime]:
        """Largest k >= 1 such that base + k periods <= now."""
        if base >= now:
            return None
        steps = max(_estimate_steps(base, period, now), 0)
        while steps > 0 and _shift(base, period, steps) > now:
            steps -= 1
        while _shift(base, period, steps + 1) <= now:
            steps += 1
        if steps < 1:
            return None
        return _shift(base, period, steps)

    def _next_weekday_occurrence(
        self, now: datetime, repeat_days: Iterable[Weekday], base: datetime
    ) -> datetime:
        """First listed weekday at the anchor's time-of-day strictly after now."""
        wanted = _weekday_numbers(repeat_days)
        for offset in range(self.weekly_scan_days):
            day = now + timedelta(days=offset)
            if day.weekday() in wanted:
                candidate = _at_time_of(day, base)
                if candidate > now:
                    return candidate
        return _at_time_of(now + timedelta(days=7), base)

    def _previous_weekday_occurrence(
        self, now: datetime, repeat_days: Iterable[Weekday], base: datetime
    ) -> Optional[datetime]:
        """Latest listed weekday at the anchor's time-of-day at or before now."""
        wanted = _weekday_numbers(repeat_days)
        for offset in range(self.weekly_scan_days):
            day = now - timedelta(days=offset)
            if day.weekday() in wanted:
                candidate = _at_time_of(day, base)
                if candidate <= now:
                    return candidate
        return None
