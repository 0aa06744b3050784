import secrets

from fastapi import Header

from spicymarg_api.api.errors import to_http_exception
from spicymarg_api.core.settings import settings
from spicymarg_api.services.funnel.errors import AccessDeniedError


async def require_bartender_access_code(x_access_code: str = Header("", alias="X-Access-Code")) -> None:
    """Staff-only gate in front of visit confirmation."""

    expected = settings.bartender_access_code
    provided = x_access_code.strip().lower()
    if not expected or not secrets.compare_digest(provided.encode("utf-8"), expected.lower().encode("utf-8")):
        raise to_http_exception(AccessDeniedError("Incorrect access code."))
