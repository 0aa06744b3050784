"""Service wiring for request handlers."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.api.errors import to_http_exception
from spicymarg_api.core.settings import settings
from spicymarg_api.db.session import get_session
from spicymarg_api.services.funnel.errors import ConfigurationError
from spicymarg_api.services.funnel.service import FunnelService
from spicymarg_api.services.notifications import StageNotifier


@lru_cache
def _default_notifier() -> StageNotifier:
    return StageNotifier.from_settings(settings)


def get_stage_notifier(request: Request) -> StageNotifier:
    notifier = getattr(request.app.state, "stage_notifier", None)
    if notifier is not None:
        return notifier
    try:
        return _default_notifier()
    except ConfigurationError as exc:
        raise to_http_exception(exc) from exc


def get_funnel_service(
    db: AsyncSession = Depends(get_session),
    notifier: StageNotifier = Depends(get_stage_notifier),
) -> FunnelService:
    return FunnelService(db, notifier)
