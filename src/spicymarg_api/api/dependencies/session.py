"""Admin session dependency for dashboard APIs."""

from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.api.errors import to_http_exception
from spicymarg_api.db.session import get_session
from spicymarg_api.models.admin import AdminSession
from spicymarg_api.services.admin import AdminSessionService
from spicymarg_api.services.funnel.errors import FunnelError


async def require_admin_session(
    admin_token: str | None = Header(None, alias="X-Admin-Session"),
    db: AsyncSession = Depends(get_session),
) -> AdminSession:
    """Resolve the admin session passed explicitly with each dashboard request."""

    try:
        return await AdminSessionService(db).resolve(admin_token)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
