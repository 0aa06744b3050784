"""Scheduling utilities for recurring funnel jobs."""

from .config import JobDefinition, load_job_definitions
from .runner import FunnelJobScheduler

__all__ = ["FunnelJobScheduler", "JobDefinition", "load_job_definitions"]
