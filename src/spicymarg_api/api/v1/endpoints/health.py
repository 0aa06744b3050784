from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import settings
from spicymarg_api.db.session import get_session


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database readiness probe failed", error=str(exc))
        components["database"] = ComponentStatus(status="error", detail="Database unreachable")
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    scheduler = getattr(request.app.state, "funnel_job_scheduler", None)
    if settings.metrics_scheduler_enabled and scheduler is not None:
        running = bool(getattr(scheduler, "is_running", False))
        components["metrics_scheduler"] = ComponentStatus(
            status="ready" if running else "starting",
            detail=None if running else "Metrics scheduler not running",
        )
        if not running and status == "ready":
            status = "degraded"
    else:
        components["metrics_scheduler"] = ComponentStatus(
            status="disabled",
            detail="Metrics scheduler disabled via settings",
        )

    return ReadinessPayload(status=status, components=components)
