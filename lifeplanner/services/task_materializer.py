"""
Task materializer.

Turns one due occurrence of a repeat rule into a persisted task.
"""

from __future__ import annotations

from datetime import datetime

from lifeplanner.interfaces.task_repository import ITaskRepository
from lifeplanner.models.enums import TaskStatus
from lifeplanner.models.repeat import RepeatRule
from lifeplanner.models.task import Task, TaskCreate
from lifeplanner.services.dedup_guard import strip_date_suffix
from lifeplanner.utils.datetime_utils import ensure_utc, format_month_day


def generate_task_name(
    original_name: str, due: datetime, display_timezone: str = "UTC"
) -> str:
    """Replace any trailing date suffix with the occurrence date, e.g. "Pay rent (Feb 5)"."""
    return f"{strip_date_suffix(original_name)} ({format_month_day(due, display_timezone)})"


class TaskMaterializer:
    """Creates task instances for repeat occurrences."""

    def __init__(self, task_repo: ITaskRepository, display_timezone: str = "UTC"):
        self.task_repo = task_repo
        self.display_timezone = display_timezone

    def build(self, rule: RepeatRule, candidate: datetime) -> TaskCreate:
        """Build the task draft for an occurrence."""
        candidate = ensure_utc(candidate)
        source = rule.task
        return TaskCreate(
            name=generate_task_name(source.name, candidate, self.display_timezone),
            description=source.description,
            priority=source.priority,
            board_id=source.board_id,
            list_id=source.list_id,
            due_time=candidate,
            completed=False,
            status=TaskStatus.TODO,
            new_task=True,
            repeat_id=rule.id,
            occurrence_at=candidate,
        )

    async def materialize(self, rule: RepeatRule, candidate: datetime) -> Task:
        """
        Persist a new task for the occurrence.

        Raises:
            DuplicateError: If the store already holds this occurrence
        """
        return await self.task_repo.create(rule.task.owner_id, self.build(rule, candidate))
