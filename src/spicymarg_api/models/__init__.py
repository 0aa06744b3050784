"""SQLAlchemy models package."""

from .admin import AdminSession  # noqa: F401
from .guest import FINAL_STAGE, Guest, OtpChallenge, Visit  # noqa: F401
from .metrics import MonthlyMetric  # noqa: F401

__all__ = [
    "AdminSession",
    "FINAL_STAGE",
    "Guest",
    "MonthlyMetric",
    "OtpChallenge",
    "Visit",
]
