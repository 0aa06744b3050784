"""Job entrypoint for the monthly funnel metrics aggregation."""

from __future__ import annotations

import inspect
from datetime import date
from typing import Any, Awaitable, Callable, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import settings
from spicymarg_api.db.session import async_session
from spicymarg_api.services.reporting.monthly_metrics import MonthlyMetricsAggregator

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


async def aggregate_monthly_metrics(
    *,
    session_factory: SessionFactory | None = None,
    target_date: str | date | None = None,
    sms_unit_cost: float | None = None,
) -> Dict[str, Any]:
    """Aggregate one month (the previous month by default) and upsert its row."""

    factory = session_factory or async_session
    session = factory()
    if inspect.isawaitable(session):
        session = await session

    unit_cost = settings.metrics_sms_unit_cost if sms_unit_cost is None else sms_unit_cost
    async with session as active:
        aggregator = MonthlyMetricsAggregator(active, sms_unit_cost=unit_cost)
        aggregation = await aggregator.aggregate(target_date)

    summary = aggregation.as_dict()
    logger.bind(summary=summary).info("Monthly metrics job completed")
    return summary


__all__ = ["aggregate_monthly_metrics"]
