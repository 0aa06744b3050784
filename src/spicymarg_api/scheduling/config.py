"""Load recurring job schedules from TOML."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomllib


@dataclass(slots=True)
class JobDefinition:
    id: str
    task: str
    cron: str
    kwargs: dict[str, Any] = field(default_factory=dict)
    max_attempts: int = 1
    retry_delay_seconds: float = 30.0


@dataclass(slots=True)
class ScheduleConfig:
    timezone: str
    jobs: list[JobDefinition]


def load_job_definitions(config_path: Path) -> ScheduleConfig:
    """Parse ``[jobs.<name>]`` tables; entries without a task or cron are skipped."""

    if not config_path.exists():
        raise FileNotFoundError(f"Schedule config not found: {config_path}")

    data = tomllib.loads(config_path.read_text())
    jobs: list[JobDefinition] = []
    for key, payload in data.get("jobs", {}).items():
        if not isinstance(payload, dict):
            continue
        task = payload.get("task")
        cron = payload.get("cron")
        if not isinstance(task, str) or not isinstance(cron, str):
            continue
        kwargs = payload.get("kwargs", {})
        if not isinstance(kwargs, dict):
            kwargs = {}
        jobs.append(
            JobDefinition(
                id=str(payload.get("id") or key),
                task=task,
                cron=cron,
                kwargs=kwargs,
                max_attempts=max(int(payload.get("max_attempts", 1) or 1), 1),
                retry_delay_seconds=max(float(payload.get("retry_delay_seconds", 30.0) or 0), 0.0),
            )
        )

    return ScheduleConfig(timezone=str(data.get("timezone", "UTC")), jobs=jobs)


__all__ = ["JobDefinition", "ScheduleConfig", "load_job_definitions"]
