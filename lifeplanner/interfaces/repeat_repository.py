"""
Repeat rule repository interface.

Defines contract for repeat rule persistence operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from lifeplanner.core.exceptions import PlannerError
from lifeplanner.models.enums import PeriodType
from lifeplanner.models.repeat import RepeatRule, RepeatRuleCreate, RepeatRuleUpdate


class IRepeatRepository(ABC):
    """Abstract interface for repeat rule persistence."""

    @abstractmethod
    async def find_active(
        self, now: datetime, errors: Optional[list[PlannerError]] = None
    ) -> list[RepeatRule]:
        """
        Find all rules active at `now`, across all users.

        Args:
            now: Reference time for the active filter
            errors: If given, receives one ValidationError per stored rule that
                could not be read; those rules are left out of the result
        """
        pass

    @abstractmethod
    async def find_active_for_user(
        self,
        user_id: str,
        now: datetime,
        errors: Optional[list[PlannerError]] = None,
    ) -> list[RepeatRule]:
        """Find rules active at `now` whose owning task belongs to the user."""
        pass

    @abstractmethod
    async def create(
        self, user_id: str, task_id: UUID, data: RepeatRuleCreate
    ) -> RepeatRule:
        """
        Attach a repeat rule to a task.

        Raises:
            NotFoundError: If the task does not belong to the user
            DuplicateError: If the task already has a rule
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, repeat_id: UUID) -> Optional[RepeatRule]:
        """Get a rule by ID."""
        pass

    @abstractmethod
    async def get_by_task(self, user_id: str, task_id: UUID) -> Optional[RepeatRule]:
        """Get the rule attached to a task."""
        pass

    @abstractmethod
    async def list(
        self,
        user_id: str,
        period_type: Optional[PeriodType] = None,
        active: Optional[bool] = None,
        now: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[RepeatRule]:
        """
        List a user's rules.

        Args:
            user_id: Owner user ID
            period_type: Filter by period type
            active: True = only active, False = only expired, None = all
            now: Reference time for the active filter
            limit: Maximum number of results
            offset: Pagination offset
        """
        pass

    @abstractmethod
    async def count(
        self,
        user_id: str,
        period_type: Optional[PeriodType] = None,
        active: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Count a user's rules with the same filters as list()."""
        pass

    @abstractmethod
    async def update(
        self, user_id: str, repeat_id: UUID, update: RepeatRuleUpdate
    ) -> RepeatRule:
        """
        Update a rule.

        Raises:
            NotFoundError: If the rule is not found
            ValidationError: If the merged fields form an invalid period
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, repeat_id: UUID) -> bool:
        """Delete a rule. Returns False if not found."""
        pass
