"""
Repeat scheduler service.

Sweeps active repeat rules and creates task instances for occurrences that
have fallen due. Runs as an hourly APScheduler job (global sweep) and on
demand for a single user.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lifeplanner.core.config import Settings
from lifeplanner.core.exceptions import DuplicateError, PlannerError
from lifeplanner.core.logger import setup_logger
from lifeplanner.interfaces.repeat_repository import IRepeatRepository
from lifeplanner.interfaces.task_repository import ITaskRepository
from lifeplanner.models.repeat import ProcessResult, RepeatRule
from lifeplanner.models.task import Task
from lifeplanner.services.dedup_guard import DedupGuard
from lifeplanner.services.occurrence_calculator import OccurrenceCalculator
from lifeplanner.services.task_materializer import TaskMaterializer
from lifeplanner.utils.datetime_utils import UTC, now_utc

logger = setup_logger(__name__)

DEFAULT_INTERVAL_MINUTES = 60


def _default_scheduler_factory() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone=UTC)


class RepeatScheduler:
    """
    Driver for repeat rule processing.

    Lifecycle:
    - start(): run one sweep immediately, then every `interval_minutes`
    - stop(): disarm the timer; a sweep already running is left to finish
    - start/stop are no-ops when already running/stopped

    Rules are processed one at a time. A failing rule is logged and skipped.
    A global sweep that fires while the previous one is still running is skipped.
    """

    JOB_ID = "repeat_sweep"

    def __init__(
        self,
        repeat_repo: IRepeatRepository,
        task_repo: ITaskRepository,
        clock: Callable[[], datetime] = now_utc,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
        calculator: Optional[OccurrenceCalculator] = None,
        guard: Optional[DedupGuard] = None,
        materializer: Optional[TaskMaterializer] = None,
        scheduler_factory: Callable[[], AsyncIOScheduler] = _default_scheduler_factory,
    ):
        self.repeat_repo = repeat_repo
        self.task_repo = task_repo
        self.interval_minutes = interval_minutes
        self.calculator = calculator or OccurrenceCalculator()
        self.guard = guard or DedupGuard(task_repo)
        self.materializer = materializer or TaskMaterializer(task_repo)
        self._clock = clock
        self._scheduler_factory = scheduler_factory
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._initial_tick: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()
        self._last_run: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repeat_repo: IRepeatRepository,
        task_repo: ITaskRepository,
        **kwargs,
    ) -> "RepeatScheduler":
        """Build a scheduler wired with the configured window, scan and display settings."""
        return cls(
            repeat_repo=repeat_repo,
            task_repo=task_repo,
            interval_minutes=settings.REPEAT_CHECK_INTERVAL_MINUTES,
            calculator=OccurrenceCalculator(weekly_scan_days=settings.REPEAT_WEEKLY_SCAN_DAYS),
            guard=DedupGuard(
                task_repo, window=timedelta(hours=settings.REPEAT_DEDUP_WINDOW_HOURS)
            ),
            materializer=TaskMaterializer(
                task_repo, display_timezone=settings.DISPLAY_TIMEZONE
            ),
            **kwargs,
        )

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    async def start(self):
        """Run one sweep now and arm the repeating timer."""
        if self.is_running:
            logger.debug("Repeat scheduler already running")
            return

        scheduler = self._scheduler_factory()
        scheduler.add_job(
            self.tick,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="Repeat Task Sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        self._initial_tick = asyncio.create_task(self.tick())
        logger.info(
            f"Repeat scheduler started: checking every {self.interval_minutes} minutes"
        )

    async def stop(self):
        """Disarm the timer. An in-flight sweep is not interrupted."""
        if not self.is_running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Repeat scheduler stopped")

    async def tick(self) -> Optional[ProcessResult]:
        """
        Run one global sweep over all active rules.

        Returns:
            Aggregate counts, or None if the sweep was skipped because another
            one is running or aborted because the rules could not be loaded
        """
        if self._tick_lock.locked():
            logger.warning("Previous repeat sweep still running, skipping this tick")
            return None

        async with self._tick_lock:
            now = self._clock()
            logger.info("Processing repeating tasks...")
            load_errors: list[PlannerError] = []
            try:
                rules = await self.repeat_repo.find_active(now, errors=load_errors)
            except Exception as e:
                logger.error(f"Repeat sweep aborted, failed to load rules: {e}")
                return None

            result = ProcessResult()
            self._count_load_errors(load_errors, result)
            await self._process_rules(rules, now, result)
            self._last_run = now

            if result.created_count > 0:
                logger.info(
                    f"Processed {result.processed_count} repeats, "
                    f"created {result.created_count} new task instances, "
                    f"{result.failed_count} errors"
                )
            else:
                logger.info(
                    f"Processed {result.processed_count} repeats, no new tasks needed, "
                    f"{result.failed_count} errors"
                )
            return result

    async def process_for_user(self, user_id: str) -> ProcessResult:
        """
        Run a sweep restricted to one user's rules.

        Never raises: returns whatever was accumulated before any failure.
        """
        now = self._clock()
        result = ProcessResult()
        load_errors: list[PlannerError] = []
        try:
            rules = await self.repeat_repo.find_active_for_user(
                user_id, now, errors=load_errors
            )
            self._count_load_errors(load_errors, result)
            await self._process_rules(rules, now, result)
        except Exception as e:
            logger.error(f"Failed to process repeats for user {user_id}: {e}")
        return result

    @staticmethod
    def _count_load_errors(errors: list[PlannerError], result: ProcessResult):
        for error in errors:
            result.failed_count += 1
            logger.error(f"Error loading repeat: {error.message}")

    async def _process_rules(
        self, rules: Iterable[RepeatRule], now: datetime, result: ProcessResult
    ):
        for rule in rules:
            try:
                task = await self._process_rule(rule, now)
            except DuplicateError as e:
                result.processed_count += 1
                logger.info(f"Skipped repeat for task '{rule.task.name}': {e.message}")
                continue
            except Exception as e:
                result.failed_count += 1
                logger.error(f"Error processing repeat for task '{rule.task.name}': {e}")
                continue

            result.processed_count += 1
            if task:
                result.created_count += 1
                result.created_task_names.append(task.name)

    async def _process_rule(self, rule: RepeatRule, now: datetime) -> Optional[Task]:
        """Create the task for this rule's due occurrence, if it is still missing."""
        candidate = self.calculator.latest_due_occurrence(rule, rule.task.due_time, now)
        if candidate is None:
            return None

        if not await self.guard.should_materialize(rule, candidate, now):
            return None

        task = await self.materializer.materialize(rule, candidate)
        logger.info(f"Created repeating task '{task.name}' due {candidate.isoformat()}")
        return task
