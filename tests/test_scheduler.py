from pathlib import Path

import pytest

from spicymarg_api.jobs.metrics.monthly import aggregate_monthly_metrics
from spicymarg_api.scheduling import FunnelJobScheduler, JobDefinition, load_job_definitions


def test_repository_schedule_registers_monthly_metrics() -> None:
    config_path = Path(__file__).resolve().parents[1] / "config" / "schedules.toml"

    config = load_job_definitions(config_path)

    assert config.timezone == "UTC"
    job = next(job for job in config.jobs if job.id == "monthly_metrics")
    assert job.task == "spicymarg_api.jobs.metrics.monthly.aggregate_monthly_metrics"
    assert job.cron == "0 2 1 * *"
    assert job.max_attempts == 3


def test_incomplete_entries_are_skipped(tmp_path: Path) -> None:
    config_path = tmp_path / "schedules.toml"
    config_path.write_text(
        """
timezone = "Australia/Sydney"

[jobs.valid]
task = "pkg.module.run"
cron = "*/5 * * * *"
kwargs = { target_date = "2026-09-01" }

[jobs.no_cron]
task = "pkg.module.other"
"""
    )

    config = load_job_definitions(config_path)

    assert config.timezone == "Australia/Sydney"
    assert [job.id for job in config.jobs] == ["valid"]
    assert config.jobs[0].kwargs == {"target_date": "2026-09-01"}
    assert config.jobs[0].max_attempts == 1


def test_missing_schedule_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_job_definitions(tmp_path / "missing.toml")


def test_resolve_callable_requires_coroutine(tmp_path: Path) -> None:
    scheduler = FunnelJobScheduler(session_factory=lambda: None, config_path=tmp_path / "unused.toml")

    resolved = scheduler._resolve_callable(
        JobDefinition(id="m", task="spicymarg_api.jobs.metrics.monthly.aggregate_monthly_metrics", cron="0 2 1 * *")
    )
    assert resolved is aggregate_monthly_metrics

    with pytest.raises(TypeError):
        scheduler._resolve_callable(JobDefinition(id="x", task="spicymarg_api.scheduling.config.load_job_definitions", cron="* * * * *"))
    with pytest.raises(ValueError):
        scheduler._resolve_callable(JobDefinition(id="y", task="not_dotted", cron="* * * * *"))


@pytest.mark.asyncio
async def test_wrapped_job_retries_then_succeeds(tmp_path: Path) -> None:
    factory = object()
    calls: list[object] = []

    async def flaky(*, session_factory, label: str) -> str:
        calls.append(session_factory)
        if len(calls) < 2:
            raise RuntimeError("database unavailable")
        return label

    scheduler = FunnelJobScheduler(session_factory=factory, config_path=tmp_path / "unused.toml")
    job = JobDefinition(
        id="flaky",
        task="tests.flaky",
        cron="* * * * *",
        kwargs={"label": "done"},
        max_attempts=3,
        retry_delay_seconds=0,
    )

    result = await scheduler.wrap(flaky, job)()

    assert result == "done"
    assert calls == [factory, factory]
    assert scheduler._last_runs["flaky"]["status"] == "succeeded"
    assert scheduler._last_runs["flaky"]["attempts"] == 2


@pytest.mark.asyncio
async def test_wrapped_job_gives_up_after_max_attempts(tmp_path: Path) -> None:
    attempts: list[int] = []

    async def broken(*, session_factory) -> None:
        attempts.append(1)
        raise RuntimeError("still broken")

    scheduler = FunnelJobScheduler(session_factory=object(), config_path=tmp_path / "unused.toml")
    job = JobDefinition(id="broken", task="tests.broken", cron="* * * * *", max_attempts=2, retry_delay_seconds=0)

    assert await scheduler.wrap(broken, job)() is None
    assert len(attempts) == 2
    assert scheduler._last_runs["broken"]["status"] == "failed"
    assert scheduler._last_runs["broken"]["error"] == "still broken"
