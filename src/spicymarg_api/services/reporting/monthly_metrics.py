"""Monthly funnel counters and the business figures entered alongside them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List

from loguru import logger
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.models.guest import Guest, Visit, utcnow
from spicymarg_api.models.metrics import MonthlyMetric
from spicymarg_api.services.funnel.errors import InvalidInputError

_CENT = Decimal("0.01")


def resolve_target_month(target_date: str | date | None, now: datetime) -> date:
    """First day of the month containing ``target_date``, else of the previous month."""

    if isinstance(target_date, date):
        return target_date.replace(day=1)
    if target_date:
        try:
            parsed = date.fromisoformat(target_date.strip())
        except ValueError as exc:
            raise InvalidInputError("targetDate must use the YYYY-MM-DD format.") from exc
        return parsed.replace(day=1)
    current = now.astimezone(timezone.utc).date()
    if current.month == 1:
        return date(current.year - 1, 12, 1)
    return date(current.year, current.month - 1, 1)


def month_window(month: date) -> tuple[datetime, datetime]:
    start = datetime(month.year, month.month, 1, tzinfo=timezone.utc)
    if month.month == 12:
        end = datetime(month.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(month.year, month.month + 1, 1, tzinfo=timezone.utc)
    return start, end


@dataclass(frozen=True, slots=True)
class MonthlyAggregation:
    month: date
    new_leads: int
    vouchers_claimed: int
    first_visits: int
    second_visits: int
    third_visits: int
    stage1_sms_cost: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month.isoformat(),
            "new_leads": self.new_leads,
            "vouchers_claimed": self.vouchers_claimed,
            "first_visits": self.first_visits,
            "second_visits": self.second_visits,
            "third_visits": self.third_visits,
            "stage1_sms_cost": float(self.stage1_sms_cost),
        }


class MonthlyMetricsAggregator:
    """Recompute the automatic counters for one month; manual columns are left alone."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        sms_unit_cost: float | Decimal,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._sms_unit_cost = Decimal(str(sms_unit_cost))
        self._clock = clock

    async def aggregate(self, target_date: str | date | None = None) -> MonthlyAggregation:
        month = resolve_target_month(target_date, self._clock())
        start, end = month_window(month)

        new_leads = await self._count(Guest.id, and_(Guest.created_at >= start, Guest.created_at < end))
        # voucher_claimed_at is stamped once, so guests who moved past stage 1 still count.
        vouchers = await self._count(
            Guest.id,
            and_(Guest.voucher_claimed_at >= start, Guest.voucher_claimed_at < end),
        )
        visit_stmt = (
            select(Visit.visit_number, func.count(Visit.id))
            .where(Visit.created_at >= start, Visit.created_at < end)
            .group_by(Visit.visit_number)
        )
        visits = {int(number): int(count) for number, count in (await self._session.execute(visit_stmt)).all()}

        aggregation = MonthlyAggregation(
            month=month,
            new_leads=new_leads,
            vouchers_claimed=vouchers,
            first_visits=visits.get(1, 0),
            second_visits=visits.get(2, 0),
            third_visits=visits.get(3, 0),
            stage1_sms_cost=(Decimal(vouchers) * self._sms_unit_cost).quantize(_CENT, rounding=ROUND_HALF_UP),
        )
        await self._upsert(aggregation)
        logger.info("Monthly metrics aggregated", **aggregation.as_dict())
        return aggregation

    async def _count(self, column, criteria) -> int:
        result = await self._session.execute(select(func.count(column)).where(criteria))
        return int(result.scalar_one() or 0)

    async def _upsert(self, aggregation: MonthlyAggregation) -> None:
        stmt = select(MonthlyMetric).where(MonthlyMetric.month == aggregation.month)
        metric = (await self._session.execute(stmt)).scalar_one_or_none()
        if metric is None:
            metric = MonthlyMetric(month=aggregation.month)
            self._session.add(metric)

        metric.new_leads = aggregation.new_leads
        metric.vouchers_claimed = aggregation.vouchers_claimed
        metric.first_visits = aggregation.first_visits
        metric.second_visits = aggregation.second_visits
        metric.third_visits = aggregation.third_visits
        metric.stage1_sms_cost = aggregation.stage1_sms_cost
        metric.aggregated_at = self._clock()
        try:
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            logger.warning("Detected race when storing monthly metrics", month=aggregation.month.isoformat())
            await self._upsert(aggregation)
            return
        await self._session.commit()


def _money(value: Decimal | None) -> float | None:
    return None if value is None else float(value)


def calculate_profit(metric: MonthlyMetric) -> float:
    total = Decimal(metric.total_revenue or 0)
    for cost in (
        metric.ad_spend,
        metric.stage1_cogs,
        metric.stage1_sms_cost,
        metric.stage2_cogs,
        metric.stage3_cogs,
    ):
        total -= Decimal(cost or 0)
    return float(total.quantize(_CENT, rounding=ROUND_HALF_UP))


def _has_manual_figures(metric: MonthlyMetric) -> bool:
    return any(
        value is not None
        for value in (
            metric.ad_spend,
            metric.total_revenue,
            metric.stage1_cogs,
            metric.stage2_cogs,
            metric.stage3_cogs,
        )
    )


def serialize_metric(metric: MonthlyMetric) -> Dict[str, Any]:
    return {
        "month": metric.month.isoformat(),
        "new_leads": metric.new_leads,
        "vouchers_claimed": metric.vouchers_claimed,
        "first_visits": metric.first_visits,
        "second_visits": metric.second_visits,
        "third_visits": metric.third_visits,
        "stage1_sms_cost": _money(metric.stage1_sms_cost),
        "ad_spend": _money(metric.ad_spend),
        "total_ad_clicks": metric.total_ad_clicks,
        "stage1_cogs": _money(metric.stage1_cogs),
        "stage2_cogs": _money(metric.stage2_cogs),
        "stage3_cogs": _money(metric.stage3_cogs),
        "total_revenue": _money(metric.total_revenue),
        "profit": calculate_profit(metric) if _has_manual_figures(metric) else None,
        "aggregated_at": metric.aggregated_at.isoformat() if metric.aggregated_at else None,
    }


async def list_monthly_metrics(session: AsyncSession, *, limit: int = 24) -> List[MonthlyMetric]:
    stmt = select(MonthlyMetric).order_by(MonthlyMetric.month.desc()).limit(limit)
    return list((await session.execute(stmt)).scalars().all())


__all__ = [
    "MonthlyAggregation",
    "MonthlyMetricsAggregator",
    "calculate_profit",
    "list_monthly_metrics",
    "month_window",
    "resolve_target_month",
    "serialize_metric",
]
