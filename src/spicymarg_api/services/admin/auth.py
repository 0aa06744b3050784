"""Admin dashboard login backed by a bcrypt password hash and bearer sessions."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import bcrypt
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import Settings, settings as default_settings
from spicymarg_api.models.admin import AdminSession
from spicymarg_api.models.guest import utcnow
from spicymarg_api.services.funnel.errors import AccessDeniedError, ConfigurationError


@dataclass(frozen=True, slots=True)
class IssuedAdminSession:
    token: str
    expires_at: datetime


def hash_password(password: str, *, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AdminSessionService:
    """Issue, resolve and revoke admin sessions."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._config = config or default_settings
        self._clock = clock

    def verify_password(self, password: str) -> bool:
        stored = self._config.admin_password_hash
        if not stored:
            raise ConfigurationError("ADMIN_PASSWORD_HASH is not configured.")
        try:
            return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
        except ValueError as exc:
            raise ConfigurationError("ADMIN_PASSWORD_HASH is not a valid bcrypt hash.") from exc

    async def login(self, password: str | None, *, client_label: str | None = None) -> IssuedAdminSession:
        if not password or not self.verify_password(password):
            logger.warning("Admin login rejected", client=client_label)
            raise AccessDeniedError("Incorrect password.")

        now = self._clock()
        token = secrets.token_urlsafe(32)
        expires_at = now + timedelta(seconds=self._config.admin_session_ttl_seconds)
        self._session.add(
            AdminSession(
                token_hash=_hash_token(token),
                client_label=(client_label or "")[:120] or None,
                issued_at=now,
                expires_at=expires_at,
            )
        )
        await self._session.commit()
        logger.info("Admin session issued", client=client_label, expires_at=expires_at.isoformat())
        return IssuedAdminSession(token=token, expires_at=expires_at)

    async def resolve(self, token: str | None) -> AdminSession:
        if not token:
            raise AccessDeniedError("Admin session required.")
        stmt = select(AdminSession).where(AdminSession.token_hash == _hash_token(token))
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        if record is None or record.revoked_at is not None:
            raise AccessDeniedError("Admin session is not valid.")
        if self._clock() >= _ensure_aware(record.expires_at):
            raise AccessDeniedError("Admin session has expired.")
        return record

    async def logout(self, token: str | None) -> None:
        record = await self.resolve(token)
        record.revoked_at = self._clock()
        await self._session.commit()
        logger.info("Admin session revoked", session_id=str(record.id))


__all__ = ["AdminSessionService", "IssuedAdminSession", "hash_password"]
