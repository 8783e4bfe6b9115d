"""
Тесты фонового воркера.

Тестирует:
- Job: валидация расписания, триггеры
- Worker: состояния, количество задач, изоляция ошибок задач
- Worker с настоящим планировщиком: остановка ждёт выполняющуюся задачу
- default_jobs
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from usersync.config.base import WorkerSettings
from usersync.services.worker import (
    Job,
    Worker,
    WorkerState,
    default_jobs,
    request_user_sync,
    send_heartbeat,
)
from usersync.shared.exceptions import ConfigurationError


@pytest.fixture
def worker_settings() -> WorkerSettings:
    return WorkerSettings(timezone="UTC", misfire_grace_time=5)


class TestJob:
    def test_interval_job(self):
        job = Job(name="tick", task=AsyncMock(), interval_seconds=30)

        assert isinstance(job.trigger("UTC"), IntervalTrigger)

    def test_cron_job(self):
        job = Job(name="nightly", task=AsyncMock(), cron="0 3 * * *")

        assert isinstance(job.trigger("UTC"), CronTrigger)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"interval_seconds": 10, "cron": "* * * * *"},
            {"interval_seconds": 0},
            {"interval_seconds": -5},
            {"cron": "every monday"},
        ],
    )
    def test_invalid_cadence(self, kwargs):
        with pytest.raises(ConfigurationError):
            Job(name="broken", task=AsyncMock(), **kwargs)


class TestWorker:
    def test_disabled_jobs_are_not_counted(self, container, worker_settings):
        worker = Worker(
            container,
            jobs=[
                Job(name="a", task=AsyncMock(), interval_seconds=10),
                Job(name="b", task=AsyncMock(), interval_seconds=10, enabled=False),
            ],
            settings=worker_settings,
        )

        assert worker.jobs_count == 1
        assert worker.state is WorkerState.IDLE

    def test_duplicate_job_names(self, container, worker_settings):
        with pytest.raises(ConfigurationError):
            Worker(
                container,
                jobs=[
                    Job(name="a", task=AsyncMock(), interval_seconds=10),
                    Job(name="a", task=AsyncMock(), cron="* * * * *"),
                ],
                settings=worker_settings,
            )

    @pytest.mark.asyncio
    async def test_start_and_stop(self, container, worker_settings):
        worker = Worker(
            container,
            jobs=[Job(name="tick", task=AsyncMock(), interval_seconds=60)],
            settings=worker_settings,
        )

        with patch("usersync.services.worker.logger") as mock_logger:
            worker.start()

        assert worker.is_running
        assert worker.scheduler.get_job("tick") is not None
        mock_logger.info.assert_any_call("Worker started with 1 job(s)", component="worker")

        await worker.stop(grace_period=0.1)

        assert worker.state is WorkerState.STOPPED
        assert not worker.scheduler.running

    @pytest.mark.asyncio
    async def test_stopped_worker_does_not_restart(self, container, worker_settings):
        worker = Worker(container, jobs=[], settings=worker_settings)
        worker.start()
        await worker.stop(grace_period=0.1)

        worker.start()

        assert worker.state is WorkerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_from_idle(self, container, worker_settings):
        worker = Worker(container, jobs=[], settings=worker_settings)

        await worker.stop(grace_period=0.1)

        assert worker.state is WorkerState.STOPPED

    @pytest.mark.asyncio
    async def test_failing_job_is_isolated(self, container, worker_settings):
        failing = Job(name="failing", task=AsyncMock(side_effect=RuntimeError("boom")), interval_seconds=10)
        healthy_task = AsyncMock()
        healthy = Job(name="healthy", task=healthy_task, interval_seconds=10)
        worker = Worker(container, jobs=[failing, healthy], settings=worker_settings)

        await worker._run(failing)
        await worker._run(healthy)

        healthy_task.assert_awaited_once_with(container)
        stats = worker.stats()
        assert stats["failing"]["failures"] == 1
        assert stats["failing"]["last_error"] == "boom"
        assert stats["healthy"]["runs"] == 1
        assert stats["healthy"]["failures"] == 0

    @pytest.mark.asyncio
    async def test_sync_task(self, container, worker_settings):
        task = MagicMock(return_value=None)
        job = Job(name="sync", task=task, interval_seconds=10)
        worker = Worker(container, jobs=[job], settings=worker_settings)

        await worker._run(job)

        task.assert_called_once_with(container)
        assert worker.tracker.count == 0

    @pytest.mark.asyncio
    async def test_stop_waits_for_running_job(self, container, worker_settings):
        completed = []

        async def slow_task(_container):
            await asyncio.sleep(0.3)
            completed.append(True)

        worker = Worker(
            container,
            jobs=[Job(name="slow", task=slow_task, interval_seconds=0.05)],
            settings=worker_settings,
        )
        worker.start()
        for _ in range(100):
            if worker.tracker.count == 1:
                break
            await asyncio.sleep(0.01)
        assert worker.tracker.count == 1

        await worker.stop(grace_period=2)

        assert completed == [True]
        assert worker.tracker.count == 0
        assert not worker.scheduler.running

    @pytest.mark.asyncio
    async def test_scheduled_failures_do_not_stop_other_jobs(self, container, worker_settings):
        failing_task = AsyncMock(side_effect=RuntimeError("boom"))
        healthy_task = AsyncMock()
        worker = Worker(
            container,
            jobs=[
                Job(name="failing", task=failing_task, interval_seconds=0.05),
                Job(name="healthy", task=healthy_task, interval_seconds=0.05),
            ],
            settings=worker_settings,
        )
        worker.start()
        try:
            await asyncio.sleep(0.4)

            stats = worker.stats()
            assert stats["failing"]["failures"] >= 2
            assert stats["healthy"]["runs"] >= 2
            assert stats["healthy"]["failures"] == 0
            assert worker.state is WorkerState.RUNNING
            assert worker.jobs_count == 2
            assert worker.scheduler.get_job("failing") is not None
        finally:
            await worker.stop(grace_period=1)


class TestDefaultJobs:
    def test_interval_defaults(self):
        jobs = {job.name: job for job in default_jobs(WorkerSettings(sync_users_interval=120))}

        assert set(jobs) == {"sync-users", "heartbeat"}
        assert jobs["sync-users"].interval_seconds == 120
        assert jobs["sync-users"].cron is None

    def test_cron_replaces_interval(self):
        jobs = {job.name: job for job in default_jobs(WorkerSettings(heartbeat_cron="*/5 * * * *"))}

        assert jobs["heartbeat"].cron == "*/5 * * * *"
        assert jobs["heartbeat"].interval_seconds is None

    def test_disabled_job(self, container):
        settings = WorkerSettings(heartbeat_enabled=False)

        worker = Worker(container, settings=settings)

        assert worker.jobs_count == 1

    @pytest.mark.asyncio
    async def test_tasks_publish(self, container):
        await request_user_sync(container)
        await send_heartbeat(container)

        container.producers.request_user_sync.assert_awaited_once_with(reason="scheduled")
        container.producers.heartbeat.assert_awaited_once()
