"""Australian phone number normalisation for SMS delivery."""

from __future__ import annotations

import re

_STRIP_PATTERN = re.compile(r"[\s()\-]")
_VALID_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


def normalize_phone(raw: str | None) -> str:
    """Return ``raw`` in +61 international form where it is a local AU number."""

    if not raw:
        return ""
    phone = _STRIP_PATTERN.sub("", raw.strip())
    if phone.startswith("+61"):
        return phone
    if phone.startswith("0"):
        return "+61" + phone[1:]
    if phone.isdigit():
        return "+61" + phone
    return phone


def is_valid_phone(phone: str) -> bool:
    return bool(_VALID_PATTERN.match(phone or ""))


__all__ = ["is_valid_phone", "normalize_phone"]
