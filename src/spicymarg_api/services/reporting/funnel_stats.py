"""Funnel conversion report for the admin dashboard."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.models.guest import FINAL_STAGE, Guest

STAGE_NAMES: dict[int, str] = {
    0: "Leads (Signed Up)",
    1: "Voucher Claimed (Spicy Marg)",
    2: "1st Visit (Spicy Marg Redeemed)",
    3: "2nd Visit (Icey Marg Redeemed)",
    4: "3rd Visit (Funnel Completed)",
}


def _percentage(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


@dataclass(slots=True)
class StageStat:
    stage: int
    stage_name: str
    count: int
    conversion_rate: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "stage_name": self.stage_name,
            "count": self.count,
            "conversion_rate": self.conversion_rate,
        }


@dataclass(slots=True)
class FunnelStats:
    stages: List[StageStat] = field(default_factory=list)

    @property
    def overall_conversion(self) -> float:
        if not self.stages:
            return 0.0
        return _percentage(self.stages[-1].count, self.stages[0].count)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stages": [stage.as_dict() for stage in self.stages],
            "overall_conversion": self.overall_conversion,
        }


class FunnelStatsService:
    """Count guests who reached each stage; conversion is relative to the stage before."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def compute(self) -> FunnelStats:
        stmt = select(Guest.stage, func.count(Guest.id)).group_by(Guest.stage)
        rows = (await self._session.execute(stmt)).all()
        at_stage = {int(stage): int(count) for stage, count in rows}

        reached: dict[int, int] = {}
        running = 0
        for stage in range(FINAL_STAGE, -1, -1):
            running += at_stage.get(stage, 0)
            reached[stage] = running

        stats = FunnelStats()
        previous: int | None = None
        for stage in range(0, FINAL_STAGE + 1):
            count = reached[stage]
            rate = 100.0 if previous is None and count else _percentage(count, previous or 0)
            stats.stages.append(
                StageStat(stage=stage, stage_name=STAGE_NAMES[stage], count=count, conversion_rate=rate)
            )
            previous = count
        return stats


__all__ = ["FunnelStats", "FunnelStatsService", "STAGE_NAMES", "StageStat"]
