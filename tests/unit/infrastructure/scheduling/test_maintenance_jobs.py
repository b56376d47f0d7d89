from unittest.mock import AsyncMock, MagicMock

import pytest

from steadfast.infrastructure.monitoring.logger_setup import DEFAULT_RETENTION_DAYS
from steadfast.infrastructure.scheduling import maintenance_jobs
from steadfast.infrastructure.scheduling.maintenance_jobs import register_default_jobs
from steadfast.infrastructure.scheduling.task_scheduler import TaskScheduler


@pytest.fixture
async def scheduler():
    scheduler = TaskScheduler()
    yield scheduler
    await scheduler.shutdown()


async def test_all_jobs_registered_with_their_intervals(scheduler):
    """Every collaborator gets its job at the standard interval."""
    jobs = register_default_jobs(
        scheduler,
        cache=MagicMock(),
        log_rotator=MagicMock(),
        persist_state=AsyncMock(),
        queue_gc=MagicMock(),
    )

    assert [(job.name, job.interval_seconds) for job in jobs] == [
        ("cache-cleanup", maintenance_jobs.CACHE_CLEANUP_INTERVAL),
        ("log-rotation", maintenance_jobs.LOG_ROTATION_INTERVAL),
        ("log-cleanup", maintenance_jobs.LOG_CLEANUP_INTERVAL),
        ("state-autosave", maintenance_jobs.STATE_AUTOSAVE_INTERVAL),
        ("queue-gc", maintenance_jobs.QUEUE_GC_INTERVAL),
    ]
    assert [info["interval"] for info in scheduler.list()] == ["5min", "1h", "1d", "2min", "10min"]


async def test_only_supplied_collaborators_get_jobs(scheduler):
    """Jobs are skipped for collaborators that were not supplied."""
    jobs = register_default_jobs(scheduler, cache=MagicMock())
    assert [job.name for job in jobs] == ["cache-cleanup"]

    assert register_default_jobs(TaskScheduler()) == []


async def test_handlers_call_collaborators(scheduler):
    """Each job handler delegates to its collaborator."""
    cache = MagicMock()
    rotator = MagicMock()
    register_default_jobs(scheduler, cache=cache, log_rotator=rotator)

    scheduler.get("cache-cleanup").handler()
    scheduler.get("log-rotation").handler()
    scheduler.get("log-cleanup").handler()

    cache.cleanup.assert_called_once_with()
    rotator.rotate_logs.assert_called_once_with()
    rotator.clean_old_logs.assert_called_once_with(DEFAULT_RETENTION_DAYS)
