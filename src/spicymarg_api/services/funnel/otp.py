"""Phone verification: issue a short-lived code, then check it to enter stage 1."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, NoReturn, Protocol
from uuid import UUID

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import Settings, settings as default_settings
from spicymarg_api.models.guest import Guest, OtpChallenge, utcnow
from spicymarg_api.observability.funnel import FunnelObservabilityStore, get_funnel_store

from .errors import (
    GuestNotFoundError,
    InvalidInputError,
    InvalidOtpError,
    StageMismatchError,
    TransientError,
)
from .phone import is_valid_phone, normalize_phone
from .redemption import parse_guest_id


class VerificationCodeSender(Protocol):
    async def send_verification_code(self, guest_id: UUID, phone: str, code: str) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class OtpIssue:
    guest_id: UUID
    phone: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class VerificationResult:
    guest_id: UUID
    email: str
    full_name: str
    phone: str
    new_stage: int


def generate_code(length: int) -> str:
    return f"{secrets.randbelow(10**length):0{length}d}"


def hash_code(secret: str, guest_id: UUID, phone: str, code: str) -> str:
    return hashlib.sha256(f"{secret}:{guest_id}:{phone}:{code}".encode("utf-8")).hexdigest()


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OtpVerificationFlow:
    """Only the latest issued code for a guest is valid, and only once."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        sender: VerificationCodeSender,
        config: Settings | None = None,
        observability: FunnelObservabilityStore | None = None,
        clock: Callable[[], datetime] = utcnow,
        code_generator: Callable[[int], str] = generate_code,
    ) -> None:
        self._session = session
        self._sender = sender
        self._config = config or default_settings
        self._observability = observability or get_funnel_store()
        self._clock = clock
        self._generate = code_generator

    async def request_code(self, guest_id: object, phone: str | None) -> OtpIssue:
        guest_uuid = parse_guest_id(guest_id)
        normalized = normalize_phone(phone)
        if not is_valid_phone(normalized):
            raise InvalidInputError("Please enter a valid mobile number.")

        guest = await self._session.get(Guest, guest_uuid, populate_existing=True)
        if guest is None:
            raise GuestNotFoundError(guest_uuid)
        current_stage = guest.stage
        if current_stage != 0:
            await self._session.rollback()
            raise StageMismatchError("This voucher has already been claimed.", current_stage=current_stage)

        code = self._generate(self._config.otp_length)
        now = self._clock()
        expires_at = now + timedelta(seconds=self._config.otp_ttl_seconds)
        try:
            await self._store_challenge(guest_uuid, normalized, code, now, expires_at)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Failed to store verification code", guest_id=str(guest_uuid))
            raise TransientError("Verification code could not be issued, please try again.") from exc

        # The new challenge stays uncommitted until the SMS is out, so a failed
        # resend leaves the previously delivered code valid.
        try:
            delivered = await self._sender.send_verification_code(guest_uuid, normalized, code)
        except Exception:
            await self._session.rollback()
            raise
        if not delivered:
            await self._session.rollback()
            logger.warning("Verification code not delivered", guest_id=str(guest_uuid))
            raise TransientError("Verification code could not be sent, please try again.")

        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Failed to store verification code", guest_id=str(guest_uuid))
            raise TransientError("Verification code could not be issued, please try again.") from exc

        self._observability.record_otp_issued()
        logger.info("Verification code issued", guest_id=str(guest_uuid), expires_at=expires_at.isoformat())
        return OtpIssue(guest_id=guest_uuid, phone=normalized, expires_at=expires_at)

    async def _store_challenge(
        self,
        guest_id: UUID,
        phone: str,
        code: str,
        now: datetime,
        expires_at: datetime,
    ) -> None:
        code_hash = hash_code(self._config.secret_key, guest_id, phone, code)
        challenge = await self._session.get(OtpChallenge, guest_id, populate_existing=True)
        if challenge is None:
            challenge = OtpChallenge(guest_id=guest_id)
            self._session.add(challenge)
        challenge.phone = phone
        challenge.code_hash = code_hash
        challenge.expires_at = expires_at
        challenge.attempts = 0
        challenge.consumed_at = None
        challenge.created_at = now
        try:
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            logger.warning("Detected race when storing verification code", guest_id=str(guest_id))
            await self._store_challenge(guest_id, phone, code, now, expires_at)

    async def verify_code(self, guest_id: object, code: str | None, full_name: str | None) -> VerificationResult:
        guest_uuid = parse_guest_id(guest_id)
        name = (full_name or "").strip()
        if not name:
            raise InvalidInputError("Please enter your full name.")
        if len(name) > 200:
            raise InvalidInputError("Name is too long.")
        submitted = (code or "").strip()

        guest = await self._session.get(Guest, guest_uuid, populate_existing=True)
        if guest is None:
            raise GuestNotFoundError(guest_uuid)
        email = guest.email
        current_stage = guest.stage

        challenge = await self._session.get(OtpChallenge, guest_uuid, populate_existing=True)
        now = self._clock()
        if challenge is None:
            await self._refuse("no_challenge")
        if challenge.consumed_at is not None:
            await self._refuse("consumed")
        if now > _ensure_aware(challenge.expires_at):
            await self._refuse("expired")
        if challenge.attempts >= self._config.otp_max_attempts:
            await self._refuse("exhausted")

        expected = hash_code(self._config.secret_key, guest_uuid, challenge.phone, submitted)
        if not secrets.compare_digest(expected, challenge.code_hash):
            challenge.attempts += 1
            await self._session.commit()
            await self._refuse("mismatch")

        challenge.consumed_at = now
        phone = challenge.phone
        stmt = (
            update(Guest)
            .where(Guest.id == guest_uuid, Guest.stage == 0)
            .values(
                stage=1,
                full_name=name,
                phone=phone,
                last_stage_at=now,
                voucher_claimed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
            if result.rowcount != 1:
                await self._session.rollback()
                self._observability.record_conflict("already_verified")
                raise StageMismatchError("This voucher has already been claimed.", current_stage=current_stage)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Failed to record phone verification", guest_id=str(guest_uuid))
            raise TransientError("Verification could not be recorded, please try again.") from exc

        self._observability.record_otp_verified()
        logger.info("Phone verified", guest_id=str(guest_uuid))
        return VerificationResult(
            guest_id=guest_uuid,
            email=email,
            full_name=name,
            phone=phone,
            new_stage=1,
        )

    async def _refuse(self, reason: str) -> NoReturn:
        await self._session.rollback()
        self._observability.record_otp_rejected(reason)
        logger.info("Verification code rejected", reason=reason)
        raise InvalidOtpError("Invalid or expired verification code.")


__all__ = [
    "OtpIssue",
    "OtpVerificationFlow",
    "VerificationCodeSender",
    "VerificationResult",
    "generate_code",
    "hash_code",
]
