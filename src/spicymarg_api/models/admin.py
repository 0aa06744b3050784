"""Admin dashboard session model."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from spicymarg_api.db.base import Base
from spicymarg_api.models.guest import utcnow


class AdminSession(Base):
    """Explicit bearer session issued after a successful admin password check."""

    __tablename__ = "admin_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    client_label = Column(String(120), nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
