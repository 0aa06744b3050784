"""Opaque link tokens carrying a guest id plus a display value.

Tokens are routing keys, not credentials: anything that decodes is still
checked against the stored guest stage before an offer is shown or redeemed.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from urllib.parse import quote, unquote

from .errors import TokenDecodeError, TokenDecodeErrorKind

_SEPARATOR = "|"


@dataclass(frozen=True, slots=True)
class DecodedToken:
    guest_id: str
    secondary: str


def encode_token(guest_id: object, secondary: str | None) -> str:
    """Encode ``guest_id`` and ``secondary`` into a URL-safe token."""

    guest_part = quote(str(guest_id), safe="")
    secondary_part = quote(secondary or "", safe="")
    raw = f"{guest_part}{_SEPARATOR}{secondary_part}".encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_token(token: str | None) -> DecodedToken:
    """Decode a token produced by :func:`encode_token`.

    Legacy tokens written with the standard base64 alphabet (``+`` and ``/``,
    with or without padding) are accepted too.
    """

    candidate = (token or "").strip()
    if not candidate:
        raise TokenDecodeError(TokenDecodeErrorKind.MALFORMED)

    normalised = candidate.replace("+", "-").replace("/", "_").rstrip("=")
    padded = normalised + "=" * (-len(normalised) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise TokenDecodeError(TokenDecodeErrorKind.MALFORMED) from exc

    if _SEPARATOR not in raw:
        raise TokenDecodeError(TokenDecodeErrorKind.MALFORMED)

    guest_part, secondary_part = raw.split(_SEPARATOR, 1)
    guest_id = unquote(guest_part).strip()
    if not guest_id:
        raise TokenDecodeError(TokenDecodeErrorKind.EMPTY_IDENTIFIER)
    return DecodedToken(guest_id=guest_id, secondary=unquote(secondary_part))


__all__ = ["DecodedToken", "decode_token", "encode_token"]
