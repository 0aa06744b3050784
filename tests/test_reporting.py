from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from spicymarg_api.jobs.metrics.monthly import aggregate_monthly_metrics
from spicymarg_api.models.metrics import MonthlyMetric
from spicymarg_api.services.funnel.errors import InvalidInputError
from spicymarg_api.services.reporting import (
    FunnelStatsService,
    MonthlyMetricsAggregator,
    calculate_profit,
    list_monthly_metrics,
    resolve_target_month,
    serialize_metric,
)


def _at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


async def _seed_september(session_factory, make_guest) -> None:
    await make_guest(session_factory, email="lead@example.com", stage=0, created_at=_at(2026, 9, 5))
    await make_guest(session_factory, email="regular@example.com", stage=3, created_at=_at(2026, 9, 10))
    await make_guest(
        session_factory,
        email="august@example.com",
        stage=1,
        created_at=_at(2026, 8, 30),
        voucher_claimed_at=_at(2026, 9, 2),
    )
    await make_guest(session_factory, email="october@example.com", stage=4, created_at=_at(2026, 10, 1))


@pytest.mark.asyncio
async def test_funnel_stats_count_guests_reaching_each_stage(session_factory, make_guest) -> None:
    for index, stage in enumerate([0, 0, 1, 1, 2, 4]):
        await make_guest(session_factory, email=f"guest{index}@example.com", stage=stage)

    async with session_factory() as session:
        stats = await FunnelStatsService(session).compute()

    assert [stage.count for stage in stats.stages] == [6, 4, 2, 1, 1]
    assert [stage.conversion_rate for stage in stats.stages] == [100.0, 66.67, 50.0, 50.0, 100.0]
    assert stats.overall_conversion == 16.67
    assert stats.as_dict()["stages"][0]["stage_name"] == "Leads (Signed Up)"


@pytest.mark.asyncio
async def test_funnel_stats_on_empty_database(session_factory) -> None:
    async with session_factory() as session:
        stats = await FunnelStatsService(session).compute()

    assert [stage.count for stage in stats.stages] == [0, 0, 0, 0, 0]
    assert all(stage.conversion_rate == 0.0 for stage in stats.stages)
    assert stats.overall_conversion == 0.0


@pytest.mark.parametrize(
    ("target", "now", "expected"),
    [
        (None, _at(2026, 10, 19), date(2026, 9, 1)),
        (None, _at(2026, 1, 3), date(2025, 12, 1)),
        ("2026-03-17", _at(2026, 10, 19), date(2026, 3, 1)),
        (date(2026, 2, 28), _at(2026, 10, 19), date(2026, 2, 1)),
    ],
)
def test_target_month_resolution(target, now, expected) -> None:
    assert resolve_target_month(target, now) == expected


def test_bad_target_date_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        resolve_target_month("September", _at(2026, 10, 19))


@pytest.mark.asyncio
async def test_aggregation_counts_previous_month(session_factory, make_guest, clock) -> None:
    await _seed_september(session_factory, make_guest)

    async with session_factory() as session:
        aggregation = await MonthlyMetricsAggregator(session, sms_unit_cost=0.1091, clock=clock).aggregate()

    assert aggregation.month == date(2026, 9, 1)
    assert aggregation.new_leads == 2
    assert aggregation.vouchers_claimed == 2
    assert aggregation.first_visits == 1
    assert aggregation.second_visits == 1
    assert aggregation.third_visits == 0
    assert aggregation.stage1_sms_cost == Decimal("0.22")


@pytest.mark.asyncio
async def test_aggregation_preserves_manual_figures(session_factory, make_guest, clock) -> None:
    await _seed_september(session_factory, make_guest)
    async with session_factory() as session:
        session.add(
            MonthlyMetric(
                month=date(2026, 9, 1),
                new_leads=99,
                ad_spend=Decimal("100.00"),
                total_revenue=Decimal("500.00"),
                stage1_cogs=Decimal("20.00"),
            )
        )
        await session.commit()

    for _ in range(2):
        async with session_factory() as session:
            await MonthlyMetricsAggregator(session, sms_unit_cost=0.1091, clock=clock).aggregate("2026-09-20")

    async with session_factory() as session:
        rows = (await session.execute(select(MonthlyMetric))).scalars().all()

    assert len(rows) == 1
    metric = rows[0]
    assert metric.new_leads == 2
    assert metric.ad_spend == Decimal("100.00")
    assert metric.total_revenue == Decimal("500.00")
    assert calculate_profit(metric) == 379.78


@pytest.mark.asyncio
async def test_listing_is_newest_first(session_factory) -> None:
    async with session_factory() as session:
        for month in (date(2026, 7, 1), date(2026, 9, 1), date(2026, 8, 1)):
            session.add(MonthlyMetric(month=month))
        await session.commit()

    async with session_factory() as session:
        metrics = await list_monthly_metrics(session, limit=2)

    assert [metric.month for metric in metrics] == [date(2026, 9, 1), date(2026, 8, 1)]
    payload = serialize_metric(metrics[0])
    assert payload["month"] == "2026-09-01"
    assert payload["ad_spend"] is None
    assert payload["profit"] is None


@pytest.mark.asyncio
async def test_monthly_job_entrypoint(session_factory, make_guest) -> None:
    await _seed_september(session_factory, make_guest)

    summary = await aggregate_monthly_metrics(
        session_factory=session_factory,
        target_date="2026-09-01",
        sms_unit_cost=1.0,
    )

    assert summary["month"] == "2026-09-01"
    assert summary["vouchers_claimed"] == 2
    assert summary["stage1_sms_cost"] == 2.0


def test_profit_appears_once_a_manual_figure_is_entered() -> None:
    metric = MonthlyMetric(month=date(2026, 9, 1), stage1_sms_cost=Decimal("0.22"))
    assert serialize_metric(metric)["profit"] is None

    metric.ad_spend = Decimal("10.00")
    assert serialize_metric(metric)["profit"] == -10.22
