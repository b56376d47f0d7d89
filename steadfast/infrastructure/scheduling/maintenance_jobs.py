"""Default maintenance jobs wired from the application's collaborators.

Each job is registered only when its collaborator is supplied.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from steadfast.domain.interfaces.cache import CacheService
from steadfast.infrastructure.monitoring.logger_setup import DEFAULT_RETENTION_DAYS, LogRotator
from steadfast.infrastructure.scheduling.task_scheduler import ScheduledJob, TaskScheduler

logger = logging.getLogger(__name__)

CACHE_CLEANUP_INTERVAL = 5 * 60
LOG_ROTATION_INTERVAL = 60 * 60
LOG_CLEANUP_INTERVAL = 24 * 60 * 60
STATE_AUTOSAVE_INTERVAL = 2 * 60
QUEUE_GC_INTERVAL = 10 * 60


def register_default_jobs(
    scheduler: TaskScheduler,
    cache: Optional[CacheService] = None,
    log_rotator: Optional[LogRotator] = None,
    persist_state: Optional[Callable[[], Awaitable[Any]]] = None,
    queue_gc: Optional[Callable[[], Any]] = None,
) -> List[ScheduledJob]:
    """Registers the standard maintenance jobs.

    Args:
        scheduler: Scheduler to register on.
        cache: Swept for expired entries.
        log_rotator: Rotates and prunes the log file.
        persist_state: Host coroutine that snapshots and saves state.
        queue_gc: Host callable dropping idle queues (e.g. music queues
            with no active connection).

    Returns:
        The jobs that were registered.
    """
    jobs: List[ScheduledJob] = []

    if cache is not None:
        jobs.append(scheduler.register("cache-cleanup", cache.cleanup, CACHE_CLEANUP_INTERVAL))

    if log_rotator is not None:
        jobs.append(scheduler.register("log-rotation", log_rotator.rotate_logs, LOG_ROTATION_INTERVAL))
        jobs.append(scheduler.register(
            "log-cleanup",
            lambda: log_rotator.clean_old_logs(DEFAULT_RETENTION_DAYS),
            LOG_CLEANUP_INTERVAL,
        ))

    if persist_state is not None:
        jobs.append(scheduler.register("state-autosave", persist_state, STATE_AUTOSAVE_INTERVAL))

    if queue_gc is not None:
        jobs.append(scheduler.register("queue-gc", queue_gc, QUEUE_GC_INTERVAL))

    logger.info(f"{len(jobs)} maintenance job(s) initialized")
    return jobs
