"""Admin dashboard endpoints: sessions, funnel conversion and monthly metrics."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.api.dependencies.session import require_admin_session
from spicymarg_api.api.errors import to_http_exception
from spicymarg_api.core.settings import settings
from spicymarg_api.db.session import get_session
from spicymarg_api.models.admin import AdminSession
from spicymarg_api.services.admin import AdminSessionService
from spicymarg_api.services.funnel.errors import FunnelError
from spicymarg_api.services.reporting import (
    FunnelStatsService,
    MonthlyMetricsAggregator,
    list_monthly_metrics,
    serialize_metric,
)


router = APIRouter(prefix="/admin", tags=["admin"])


class AdminLoginRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=256)


class AdminLoginResponse(BaseModel):
    token: str
    expiresAt: datetime


class AggregateRequest(BaseModel):
    targetDate: Optional[date] = Field(None, description="Any day inside the month to aggregate")


@router.post("/sessions", response_model=AdminLoginResponse, status_code=status.HTTP_201_CREATED)
async def create_admin_session(
    payload: AdminLoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> AdminLoginResponse:
    client_label = request.headers.get("user-agent")
    logger.info("Admin access attempt", client=client_label)
    try:
        issued = await AdminSessionService(db).login(payload.password, client_label=client_label)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return AdminLoginResponse(token=issued.token, expiresAt=issued.expires_at)


@router.delete("/sessions/current", status_code=status.HTTP_204_NO_CONTENT)
async def delete_admin_session(
    admin_token: str | None = Header(None, alias="X-Admin-Session"),
    db: AsyncSession = Depends(get_session),
) -> Response:
    try:
        await AdminSessionService(db).logout(admin_token)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/funnel/stats")
async def get_funnel_stats(
    _: AdminSession = Depends(require_admin_session),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    stats = await FunnelStatsService(db).compute()
    return stats.as_dict()


@router.get("/metrics/monthly")
async def get_monthly_metrics(
    limit: int = Query(24, ge=1, le=120),
    _: AdminSession = Depends(require_admin_session),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    metrics = await list_monthly_metrics(db, limit=limit)
    return {"metrics": [serialize_metric(metric) for metric in metrics]}


@router.post("/metrics/monthly/aggregate")
async def aggregate_monthly_metrics(
    payload: AggregateRequest | None = None,
    _: AdminSession = Depends(require_admin_session),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    target = payload.targetDate if payload else None
    aggregator = MonthlyMetricsAggregator(db, sms_unit_cost=settings.metrics_sms_unit_cost)
    try:
        aggregation = await aggregator.aggregate(target)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return aggregation.as_dict()
