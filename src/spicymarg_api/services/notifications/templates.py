"""CRM attribute payloads, links and message copy for each funnel step."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict
from uuid import UUID

from spicymarg_api.services.funnel.offers import Offer
from spicymarg_api.services.funnel.tokens import encode_token


def first_name_of(full_name: str | None) -> str:
    if not full_name:
        return ""
    return full_name.strip().split(" ")[0]


def voucher_link(base_url: str, guest_id: UUID | str, email: str) -> str:
    return f"{base_url.rstrip('/')}/voucher?token={encode_token(guest_id, email)}"


def coupon_link(base_url: str, guest_id: UUID | str, full_name: str | None, offer: Offer) -> str:
    token = encode_token(guest_id, full_name or "")
    return f"{base_url.rstrip('/')}/confirm/{token}?type={offer.value}"


def signup_attributes(
    *,
    guest_id: UUID | str,
    date_of_birth: date,
    voucher_url: str,
    now: datetime,
) -> Dict[str, Any]:
    return {
        "STAGE": 0,
        "LAST_STAGE_UPDATE": now.isoformat(),
        "DOB": date_of_birth.isoformat(),
        "GUEST_ID": str(guest_id),
        "VOUCHER_LINK": voucher_url,
        "COUPON_LINK_PATH": voucher_url,
    }


def verified_attributes(
    *,
    guest_id: UUID | str,
    full_name: str | None,
    phone: str,
    now: datetime,
) -> Dict[str, Any]:
    return {
        "STAGE": 1,
        "LAST_STAGE_UPDATE": now.isoformat(),
        "GUEST_ID": str(guest_id),
        "FULL_NAME": full_name or "",
        "FIRST_NAME": first_name_of(full_name),
        "SMS": phone,
        "SMS_OPT_IN": True,
    }


def progress_attributes(
    *,
    guest_id: UUID | str,
    full_name: str | None,
    new_stage: int,
    next_offer: Offer,
    base_url: str,
    review_link: str,
    now: datetime,
) -> Dict[str, Any]:
    return {
        "STAGE": new_stage,
        "LAST_STAGE_UPDATE": now.isoformat(),
        "GUEST_ID": str(guest_id),
        "FULL_NAME": full_name or "",
        "FIRST_NAME": first_name_of(full_name),
        "COUPON_LINK_PATH": coupon_link(base_url, guest_id, full_name, next_offer),
        "VISIT_TYPE_FOR_COUPON": next_offer.value,
        "REVIEW_LINK": review_link,
    }


def completion_attributes(*, now: datetime) -> Dict[str, Any]:
    return {
        "FUNNEL_COMPLETED": True,
        "COMPLETION_DATE": now.isoformat(),
        "STAGE": 4,
        "LAST_STAGE_UPDATE": now.isoformat(),
        "COUPON_LINK_PATH": None,
        "VISIT_TYPE_FOR_COUPON": None,
        "REVIEW_LINK": None,
    }


def final_thanks_params(*, full_name: str | None, review_link: str) -> Dict[str, Any]:
    return {"FIRST_NAME": first_name_of(full_name), "REVIEW_LINK": review_link}


def voucher_email_params(*, email: str, voucher_url: str) -> Dict[str, Any]:
    return {"VOUCHER_LINK": voucher_url, "EMAIL": email}


def _validity(ttl_seconds: int) -> str:
    if ttl_seconds % 60:
        return f"{ttl_seconds} seconds"
    minutes = ttl_seconds // 60
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def verification_sms_text(code: str, *, ttl_seconds: int = 600) -> str:
    return (
        "boom. $200 please, my bank pin number is.....i mean....your trap. "
        f"verification code is: {code}. Valid for {_validity(ttl_seconds)} only. Reply STOP to opt out."
    )


__all__ = [
    "completion_attributes",
    "coupon_link",
    "final_thanks_params",
    "first_name_of",
    "progress_attributes",
    "signup_attributes",
    "verification_sms_text",
    "verified_attributes",
    "voucher_email_params",
    "voucher_link",
]
