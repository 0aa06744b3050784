"""Observability endpoints for funnel telemetry."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from spicymarg_api.api.dependencies.session import require_admin_session
from spicymarg_api.observability.funnel import get_funnel_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/funnel",
    dependencies=[Depends(require_admin_session)],
    summary="Funnel telemetry snapshot",
)
async def get_funnel_snapshot() -> dict[str, object]:
    """Signup, verification, redemption and notification counters since process start."""
    return get_funnel_store().snapshot().as_dict()
