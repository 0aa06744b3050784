"""Typed failures raised by the funnel flows."""

from __future__ import annotations

from enum import Enum


class FunnelError(RuntimeError):
    """Base exception for funnel failures."""

    code = "funnel_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(FunnelError):
    """Bad input shape; the caller's fault and never worth retrying."""

    code = "validation_error"


class NotFoundError(FunnelError):
    code = "not_found"


class ConflictError(FunnelError):
    """Expected outcome of replayed or concurrent requests, not a bug."""

    code = "conflict"


class TransientError(FunnelError):
    """Backing store or transport failure; the whole operation may be retried."""

    code = "transient_error"


class ConfigurationError(FunnelError):
    """Required credentials or settings are missing."""

    code = "configuration_error"


class InvalidInputError(ValidationError):
    code = "invalid_input"


class UnderageError(ValidationError):
    code = "underage"


class InvalidOtpError(ValidationError):
    code = "invalid_otp"


class AccessDeniedError(ValidationError):
    code = "access_denied"


class TokenDecodeErrorKind(str, Enum):
    MALFORMED = "malformed"
    EMPTY_IDENTIFIER = "empty_identifier"


class TokenDecodeError(ValidationError):
    """Raised when a link token cannot be turned back into a guest identity."""

    def __init__(self, kind: TokenDecodeErrorKind, message: str | None = None) -> None:
        if message is None:
            if kind is TokenDecodeErrorKind.EMPTY_IDENTIFIER:
                message = "Token does not identify a guest."
            else:
                message = "Token could not be decoded."
        super().__init__(message)
        self.kind = kind

    @property
    def code(self) -> str:  # type: ignore[override]
        return f"token_{self.kind.value}"


class GuestNotFoundError(NotFoundError):
    code = "guest_not_found"

    def __init__(self, guest_id: object) -> None:
        super().__init__(f"Guest {guest_id} was not found.")
        self.guest_id = guest_id


class AlreadyRedeemedError(ConflictError):
    code = "already_redeemed"


class StageMismatchError(ConflictError):
    code = "stage_mismatch"

    def __init__(self, message: str, *, current_stage: int | None = None) -> None:
        super().__init__(message)
        self.current_stage = current_stage


__all__ = [
    "AccessDeniedError",
    "AlreadyRedeemedError",
    "ConfigurationError",
    "ConflictError",
    "FunnelError",
    "GuestNotFoundError",
    "InvalidInputError",
    "InvalidOtpError",
    "NotFoundError",
    "StageMismatchError",
    "TokenDecodeError",
    "TokenDecodeErrorKind",
    "TransientError",
    "UnderageError",
    "ValidationError",
]
