"""Map funnel failures onto HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from spicymarg_api.services.funnel.errors import (
    AccessDeniedError,
    ConfigurationError,
    ConflictError,
    FunnelError,
    NotFoundError,
    TransientError,
    ValidationError,
)

_STATUS_BY_TYPE: tuple[tuple[type[FunnelError], int], ...] = (
    (AccessDeniedError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: FunnelError) -> int:
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(exc: FunnelError) -> HTTPException:
    return HTTPException(status_code=status_for(exc), detail=exc.as_detail())


__all__ = ["status_for", "to_http_exception"]
