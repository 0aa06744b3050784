from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class FunnelSnapshot:
    signups: Dict[str, int]
    otp: Dict[str, int]
    redemptions: Dict[str, int]
    conflicts: Dict[str, int]
    notifications: Dict[str, Dict[str, int]]

    def as_dict(self) -> Dict[str, object]:
        return {
            "signups": dict(self.signups),
            "otp": dict(self.otp),
            "redemptions": dict(self.redemptions),
            "conflicts": dict(self.conflicts),
            "notifications": {key: dict(value) for key, value in self.notifications.items()},
        }


class FunnelObservabilityStore:
    """Collect funnel telemetry for the admin dashboard."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._signups: Dict[str, int] = defaultdict(int)
        self._otp: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._conflicts: Dict[str, int] = defaultdict(int)
        self._notifications_sent: Dict[str, int] = defaultdict(int)
        self._notifications_failed: Dict[str, int] = defaultdict(int)

    def record_signup(self, *, is_new: bool) -> None:
        with self._lock:
            self._signups["new" if is_new else "returning"] += 1

    def record_underage_signup(self) -> None:
        with self._lock:
            self._signups["underage"] += 1

    def record_otp_issued(self) -> None:
        with self._lock:
            self._otp["issued"] += 1

    def record_otp_verified(self) -> None:
        with self._lock:
            self._otp["verified"] += 1

    def record_otp_rejected(self, reason: str) -> None:
        with self._lock:
            self._otp["rejected"] += 1
            self._otp[f"rejected:{reason}"] += 1

    def record_redemption(self, visit_number: int) -> None:
        with self._lock:
            self._redemptions["total"] += 1
            self._redemptions[f"visit:{visit_number}"] += 1

    def record_conflict(self, reason: str) -> None:
        with self._lock:
            self._conflicts[reason or "unknown"] += 1

    def record_notification(self, channel: str, *, success: bool) -> None:
        with self._lock:
            bucket = self._notifications_sent if success else self._notifications_failed
            bucket[channel or "unknown"] += 1

    def snapshot(self) -> FunnelSnapshot:
        with self._lock:
            return FunnelSnapshot(
                signups=dict(self._signups),
                otp=dict(self._otp),
                redemptions=dict(self._redemptions),
                conflicts=dict(self._conflicts),
                notifications={
                    "sent": dict(self._notifications_sent),
                    "failed": dict(self._notifications_failed),
                },
            )

    def reset(self) -> None:
        with self._lock:
            self._signups.clear()
            self._otp.clear()
            self._redemptions.clear()
            self._conflicts.clear()
            self._notifications_sent.clear()
            self._notifications_failed.clear()


_STORE = FunnelObservabilityStore()


def get_funnel_store() -> FunnelObservabilityStore:
    return _STORE


__all__ = ["FunnelObservabilityStore", "FunnelSnapshot", "get_funnel_store"]
