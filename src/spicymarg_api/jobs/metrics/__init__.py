"""Monthly metrics job entrypoints."""

from .monthly import aggregate_monthly_metrics

__all__ = ["aggregate_monthly_metrics"]
