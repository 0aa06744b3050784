"""Admin reporting services."""

from .funnel_stats import STAGE_NAMES, FunnelStats, FunnelStatsService, StageStat
from .monthly_metrics import (
    MonthlyAggregation,
    MonthlyMetricsAggregator,
    calculate_profit,
    list_monthly_metrics,
    resolve_target_month,
    serialize_metric,
)

__all__ = [
    "FunnelStats",
    "FunnelStatsService",
    "MonthlyAggregation",
    "MonthlyMetricsAggregator",
    "STAGE_NAMES",
    "StageStat",
    "calculate_profit",
    "list_monthly_metrics",
    "resolve_target_month",
    "serialize_metric",
]
