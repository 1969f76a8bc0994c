"""
Duplicate guard for generated repeat instances.

Generated tasks are matched by owner, base name and due time. An unrelated
task with a similar name near the same time also suppresses generation.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from lifeplanner.core.logger import setup_logger
from lifeplanner.interfaces.task_repository import ITaskRepository
from lifeplanner.models.repeat import RepeatRule
from lifeplanner.utils.datetime_utils import ensure_utc

logger = setup_logger(__name__)

DEFAULT_DEDUP_WINDOW = timedelta(hours=24)

_DATE_SUFFIX = re.compile(r"\s*\([^)]*\)$")


def strip_date_suffix(name: str) -> str:
    """Remove a trailing " (<text>)" suffix, e.g. "Pay rent (Jan 5)" -> "Pay rent"."""
    return _DATE_SUFFIX.sub("", name)


class DedupGuard:
    """Decides whether an occurrence still needs a task instance."""

    def __init__(
        self,
        task_repo: ITaskRepository,
        window: timedelta = DEFAULT_DEDUP_WINDOW,
    ):
        self.task_repo = task_repo
        self.window = window

    async def should_materialize(
        self, rule: RepeatRule, candidate: datetime, now: datetime
    ) -> bool:
        """
        Check whether a task should be created for `candidate`.

        Returns False for occurrences that are not yet due, and for
        occurrences that already have a similar task within the window.
        """
        candidate = ensure_utc(candidate)
        if candidate > ensure_utc(now):
            return False

        base_name = strip_date_suffix(rule.task.name)
        existing = await self.task_repo.find_similar(
            rule.task.owner_id,
            base_name,
            candidate - self.window,
            candidate + self.window,
        )
        if existing:
            logger.debug(
                f"Repeat {rule.id}: '{existing.name}' already covers {candidate.isoformat()}"
            )
            return False
        return True
