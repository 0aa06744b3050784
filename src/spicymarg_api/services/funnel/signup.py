"""Guest signup with age gating; repeat signups return the existing guest."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import Settings, settings as default_settings
from spicymarg_api.models.guest import Guest, utcnow
from spicymarg_api.observability.funnel import FunnelObservabilityStore, get_funnel_store

from .errors import InvalidInputError, TransientError, UnderageError

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True, slots=True)
class SignupResult:
    guest_id: UUID
    is_new_signup: bool
    email: str
    date_of_birth: date


def normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years elapsed; a birthday falling today counts as reached."""

    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


class SignupFlow:
    def __init__(
        self,
        session: AsyncSession,
        *,
        config: Settings | None = None,
        observability: FunnelObservabilityStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._config = config or default_settings
        self._observability = observability or get_funnel_store()
        self._clock = clock

    async def signup(self, email: str | None, date_of_birth: date | None) -> SignupResult:
        normalized = normalize_email(email)
        if not normalized or len(normalized) > 320 or not _EMAIL_PATTERN.match(normalized):
            raise InvalidInputError("Please enter a valid email address.")
        if date_of_birth is None:
            raise InvalidInputError("Please enter your date of birth.")

        now = self._clock()
        if date_of_birth > now.date():
            raise InvalidInputError("Date of birth cannot be in the future.")
        if age_on(date_of_birth, now.date()) < self._config.minimum_signup_age:
            self._observability.record_underage_signup()
            raise UnderageError(f"You must be {self._config.minimum_signup_age} or older to sign up.")

        try:
            return await self._find_or_create(normalized, date_of_birth, now)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Signup failed against the backing store")
            raise TransientError("Signup could not be completed, please try again.") from exc

    async def find_guest_by_email(self, email: str) -> Guest | None:
        stmt = select(Guest).where(func.lower(Guest.email) == normalize_email(email))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_or_create(self, email: str, date_of_birth: date, now: datetime) -> SignupResult:
        existing = await self.find_guest_by_email(email)
        if existing is not None:
            self._observability.record_signup(is_new=False)
            logger.info("Returning guest signed up again", guest_id=str(existing.id))
            return SignupResult(
                guest_id=existing.id,
                is_new_signup=False,
                email=existing.email,
                date_of_birth=existing.date_of_birth,
            )

        guest = Guest(
            email=email,
            date_of_birth=date_of_birth,
            stage=0,
            last_stage_at=now,
            created_at=now,
        )
        self._session.add(guest)
        try:
            await self._session.flush()
        except IntegrityError:
            await self._session.rollback()
            logger.warning("Detected race when creating guest")
            return await self._find_or_create(email, date_of_birth, now)

        guest_id = guest.id
        await self._session.commit()
        self._observability.record_signup(is_new=True)
        logger.info("Guest signed up", guest_id=str(guest_id))
        return SignupResult(guest_id=guest_id, is_new_signup=True, email=email, date_of_birth=date_of_birth)


__all__ = ["SignupFlow", "SignupResult", "age_on", "normalize_email"]
