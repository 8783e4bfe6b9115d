"""
Worker: фоновые периодические задачи.

Использует APScheduler (AsyncIOScheduler) в том же event loop, что и
consumer'ы с HTTP. Набор задач фиксируется при создании воркера; включить
или выключить задачу можно только пересозданием.

Состояния: IDLE -> RUNNING -> STOPPED. Паузы нет.

Пример:
    worker = Worker(container)
    worker.start()
    logger.info(f"Worker started with {worker.jobs_count} job(s)")
    ...
    await worker.stop()
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from usersync.config.base import WorkerSettings
from usersync.config.constants import DEFAULT_GRACE_PERIOD_SECONDS
from usersync.services.shutdown_manager import InFlightTracker
from usersync.shared.exceptions import ConfigurationError
from usersync.utility.logging_client import logger

if TYPE_CHECKING:
    from usersync.container import Container

JobTask = Callable[["Container"], Union[Awaitable[None], None]]


class WorkerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Job:
    """Recurring task with either an interval or a crontab cadence."""

    name: str
    task: JobTask
    interval_seconds: Optional[float] = None
    cron: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        if (self.interval_seconds is None) == (self.cron is None):
            raise ConfigurationError(
                f"Job '{self.name}' needs exactly one of interval_seconds or cron",
                details={"interval_seconds": self.interval_seconds, "cron": self.cron},
            )
        if self.interval_seconds is not None and self.interval_seconds <= 0:
            raise ConfigurationError(
                f"Job '{self.name}' interval must be positive",
                details={"interval_seconds": self.interval_seconds},
            )
        if self.cron is not None:
            try:
                CronTrigger.from_crontab(self.cron)
            except ValueError as e:
                raise ConfigurationError(
                    f"Job '{self.name}' has an invalid crontab",
                    details={"cron": self.cron},
                    original_error=e,
                ) from e

    def trigger(self, tz: Any = None) -> BaseTrigger:
        if self.cron is not None:
            return CronTrigger.from_crontab(self.cron, timezone=tz)
        return IntervalTrigger(seconds=self.interval_seconds, timezone=tz)


@dataclass
class JobStats:
    runs: int = 0
    failures: int = 0
    last_error: Optional[str] = None
    last_run_at: Optional[datetime] = None


class Worker:
    """
    Планировщик фоновых задач.

    Ошибка одной задачи логируется и не влияет ни на другие задачи, ни на
    состояние воркера.
    """

    def __init__(
        self,
        container: "Container",
        jobs: Optional[Iterable[Job]] = None,
        settings: Optional[WorkerSettings] = None,
    ):
        self.container = container
        self.settings = settings or WorkerSettings.get_instance()
        configured = list(jobs) if jobs is not None else default_jobs(self.settings)
        self.jobs: Tuple[Job, ...] = tuple(job for job in configured if job.enabled)
        names = [job.name for job in self.jobs]
        if len(set(names)) != len(names):
            raise ConfigurationError("Job names must be unique", details={"jobs": names})
        self.state = WorkerState.IDLE
        self.tracker = InFlightTracker("jobs")
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._stats: Dict[str, JobStats] = {job.name: JobStats() for job in self.jobs}

    @property
    def jobs_count(self) -> int:
        return len(self.jobs)

    @property
    def is_running(self) -> bool:
        return self.state is WorkerState.RUNNING

    def start(self) -> None:
        """IDLE -> RUNNING. Должен вызываться внутри работающего event loop."""
        if self.state is not WorkerState.IDLE:
            logger.warning(f"Worker cannot start from state {self.state.value}", component="worker")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=self.settings.timezone,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": self.settings.misfire_grace_time,
            },
        )
        for job in self.jobs:
            self.scheduler.add_job(
                self._run,
                trigger=job.trigger(self.settings.timezone),
                args=[job],
                id=job.name,
                name=job.name,
                replace_existing=True,
            )
        self.scheduler.start()
        self.state = WorkerState.RUNNING
        logger.info(f"Worker started with {self.jobs_count} job(s)", component="worker")

    async def stop(self, grace_period: float = DEFAULT_GRACE_PERIOD_SECONDS) -> None:
        """RUNNING -> STOPPED. Running job executions get `grace_period` seconds to finish."""
        if self.state is WorkerState.STOPPED:
            return
        running = self.scheduler is not None and self.scheduler.running
        if running:
            # shutdown() cancels executing jobs, so stop firing first and drain
            self.scheduler.pause()
        self.state = WorkerState.STOPPED
        await self.tracker.drain(grace_period)
        if running:
            self.scheduler.shutdown(wait=False)
        logger.info("Worker stopped", component="worker")

    async def _run(self, job: Job) -> None:
        stats = self._stats[job.name]
        async with self.tracker.track():
            stats.runs += 1
            stats.last_run_at = datetime.now(timezone.utc)
            try:
                result = job.task(self.container)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                stats.failures += 1
                stats.last_error = str(e)
                logger.structured(
                    "error",
                    "job_failed",
                    component="worker",
                    job=job.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    failures=stats.failures,
                )
                return
        logger.debug(f"Job '{job.name}' completed", component="worker")

    def stats(self) -> Dict[str, Dict[str, Any]]:
        result: Dict[str, Dict[str, Any]] = {}
        for job in self.jobs:
            stats = self._stats[job.name]
            scheduled = self.scheduler.get_job(job.name) if self.is_running else None
            result[job.name] = {
                "runs": stats.runs,
                "failures": stats.failures,
                "last_error": stats.last_error,
                "last_run_at": stats.last_run_at,
                "next_run_time": scheduled.next_run_time if scheduled else None,
                "cadence": job.cron or f"every {job.interval_seconds}s",
            }
        return result


# =============================================================================
# Default jobs
# =============================================================================


async def request_user_sync(container: "Container") -> None:
    await container.producers.request_user_sync(reason="scheduled")


async def send_heartbeat(container: "Container") -> None:
    await container.producers.heartbeat()


def default_jobs(settings: WorkerSettings) -> List[Job]:
    return [
        Job(
            name="sync-users",
            task=request_user_sync,
            interval_seconds=None if settings.sync_users_cron else settings.sync_users_interval,
            cron=settings.sync_users_cron,
            enabled=settings.sync_users_enabled,
        ),
        Job(
            name="heartbeat",
            task=send_heartbeat,
            interval_seconds=None if settings.heartbeat_cron else settings.heartbeat_interval,
            cron=settings.heartbeat_cron,
            enabled=settings.heartbeat_enabled,
        ),
    ]


__all__ = [
    "Job",
    "JobStats",
    "Worker",
    "WorkerState",
    "default_jobs",
    "request_user_sync",
    "send_heartbeat",
]
