"""Funnel stage progression: tokens, eligibility, redemption, OTP and signup.

The :class:`~spicymarg_api.services.funnel.service.FunnelService` facade lives
in its own module so the notification package can import these leaves.
"""

from .eligibility import EligibilityDecision, EligibilityEvaluator, EligibilityStatus
from .errors import (
    AccessDeniedError,
    AlreadyRedeemedError,
    ConfigurationError,
    ConflictError,
    FunnelError,
    GuestNotFoundError,
    InvalidInputError,
    InvalidOtpError,
    NotFoundError,
    StageMismatchError,
    TokenDecodeError,
    TokenDecodeErrorKind,
    TransientError,
    UnderageError,
    ValidationError,
)
from .offers import Offer
from .otp import OtpIssue, OtpVerificationFlow, VerificationResult
from .redemption import RedemptionEngine, RedemptionResult
from .signup import SignupFlow, SignupResult
from .tokens import DecodedToken, decode_token, encode_token

__all__ = [
    "AccessDeniedError",
    "AlreadyRedeemedError",
    "ConfigurationError",
    "ConflictError",
    "DecodedToken",
    "EligibilityDecision",
    "EligibilityEvaluator",
    "EligibilityStatus",
    "FunnelError",
    "GuestNotFoundError",
    "InvalidInputError",
    "InvalidOtpError",
    "NotFoundError",
    "Offer",
    "OtpIssue",
    "OtpVerificationFlow",
    "RedemptionEngine",
    "RedemptionResult",
    "SignupFlow",
    "SignupResult",
    "StageMismatchError",
    "TokenDecodeError",
    "TokenDecodeErrorKind",
    "TransientError",
    "UnderageError",
    "ValidationError",
    "VerificationResult",
    "decode_token",
    "encode_token",
]
