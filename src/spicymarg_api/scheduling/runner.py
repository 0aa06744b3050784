"""Scheduler runtime for funnel reporting jobs."""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime
from importlib import import_module
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger
from zoneinfo import ZoneInfo

from spicymarg_api.models.guest import utcnow

from .config import JobDefinition, ScheduleConfig, load_job_definitions

SessionFactory = Callable[[], Awaitable[Any]] | Callable[[], Any]


class FunnelJobScheduler:
    """Register recurring jobs from the schedule file and run them on cron triggers."""

    def __init__(self, *, session_factory: SessionFactory, config_path: Path) -> None:
        self._session_factory = session_factory
        self._config_path = config_path
        self._config: ScheduleConfig | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._is_running = False
        self._last_runs: dict[str, dict[str, object]] = {}

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        config = load_job_definitions(self._config_path)
        timezone = ZoneInfo(config.timezone)
        scheduler = AsyncIOScheduler(timezone=timezone)

        for job in config.jobs:
            func = self._resolve_callable(job)
            trigger = CronTrigger.from_crontab(job.cron, timezone=timezone)
            scheduler.add_job(self.wrap(func, job), trigger=trigger, id=job.id, replace_existing=True)
            logger.info("Registered scheduled job", job_id=job.id, task=job.task, cron=job.cron)

        scheduler.start()
        self._config = config
        self._scheduler = scheduler
        self._is_running = True
        logger.info("Funnel job scheduler started", jobs=len(config.jobs))

    async def stop(self) -> None:
        if not self._scheduler:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        self._is_running = False
        logger.info("Funnel job scheduler stopped")

    def _resolve_callable(self, job: JobDefinition) -> Callable[..., Awaitable[Any]]:
        module_name, _, attr = job.task.rpartition(".")
        if not module_name:
            raise ValueError(f"Invalid task path: {job.task}")
        module: ModuleType = import_module(module_name)
        func = getattr(module, attr, None)
        if func is None:
            raise AttributeError(f"Task {job.task} not found")
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Task {job.task} must be an async function")
        return func

    def wrap(self, func: Callable[..., Awaitable[Any]], job: JobDefinition) -> Callable[[], Awaitable[Any]]:
        """Bind the session factory and retry policy of ``job`` around ``func``."""

        async def _runner() -> Any:
            for attempt in range(1, job.max_attempts + 1):
                started_at = utcnow()
                try:
                    result = await func(session_factory=self._session_factory, **job.kwargs)
                except Exception as exc:
                    self._record(job, started_at, status="failed", attempts=attempt, error=str(exc))
                    if attempt >= job.max_attempts:
                        logger.exception(
                            "Scheduled job failed after retries",
                            job_id=job.id,
                            task=job.task,
                            attempts=attempt,
                        )
                        return None
                    logger.warning(
                        "Scheduled job retrying",
                        job_id=job.id,
                        attempt=attempt + 1,
                        delay_seconds=job.retry_delay_seconds,
                    )
                    if job.retry_delay_seconds:
                        await asyncio.sleep(job.retry_delay_seconds)
                    continue

                self._record(job, started_at, status="succeeded", attempts=attempt)
                logger.info("Scheduled job completed", job_id=job.id, task=job.task, attempts=attempt)
                return result
            return None

        return _runner

    def _record(self, job: JobDefinition, started_at: datetime, *, status: str, attempts: int, error: str | None = None) -> None:
        self._last_runs[job.id] = {
            "status": status,
            "attempts": attempts,
            "started_at": started_at.isoformat(),
            "error": error,
        }

    def health(self) -> dict[str, object]:
        config_jobs = self._config.jobs if self._config else []
        return {
            "running": self._is_running,
            "configured_jobs": len(config_jobs),
            "jobs": [
                {
                    "id": job.id,
                    "task": job.task,
                    "cron": job.cron,
                    "max_attempts": job.max_attempts,
                    "last_run": self._last_runs.get(job.id),
                }
                for job in config_jobs
            ],
        }


__all__ = ["FunnelJobScheduler"]
