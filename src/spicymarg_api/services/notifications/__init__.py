"""CRM notification package."""

from .backend import (
    BrevoCrmBackend,
    CrmBackend,
    CrmDeliveryError,
    InMemoryCrmBackend,
    Recipient,
)
from .service import StageNotifier, build_crm_backend

__all__ = [
    "BrevoCrmBackend",
    "CrmBackend",
    "CrmDeliveryError",
    "InMemoryCrmBackend",
    "Recipient",
    "StageNotifier",
    "build_crm_backend",
]
