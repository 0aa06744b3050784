"""Funnel guest, visit and phone verification models."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from spicymarg_api.db.base import Base


FINAL_STAGE = 4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Guest(Base):
    """Funnel participant; the stage column is the source of truth for progress."""

    __tablename__ = "guests"
    __table_args__ = (CheckConstraint("stage >= 0 AND stage <= 4", name="ck_guests_stage_range"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(32), nullable=True)
    date_of_birth = Column(Date, nullable=False)
    stage = Column(Integer, nullable=False, default=0, server_default="0")
    last_stage_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    voucher_claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    visits = relationship(
        "Visit", back_populates="guest", cascade="all, delete-orphan", passive_deletes=True, lazy="raise"
    )
    otp_challenge = relationship(
        "OtpChallenge",
        back_populates="guest",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="raise",
    )

    @property
    def first_name(self) -> str:
        if not self.full_name:
            return ""
        return self.full_name.strip().split(" ")[0]

    @property
    def is_complete(self) -> bool:
        return self.stage >= FINAL_STAGE


class Visit(Base):
    """Insert-only redemption record; one row per guest and visit number."""

    __tablename__ = "visits"
    __table_args__ = (
        UniqueConstraint("guest_id", "visit_number", name="uq_visits_guest_visit_number"),
        CheckConstraint("visit_number IN (1, 2, 3)", name="ck_visits_visit_number"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    guest_id = Column(UUID(as_uuid=True), ForeignKey("guests.id", ondelete="CASCADE"), nullable=False, index=True)
    visit_number = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    guest = relationship("Guest", back_populates="visits")


class OtpChallenge(Base):
    """Latest phone verification code issued to a guest (hashed)."""

    __tablename__ = "otp_challenges"

    guest_id = Column(UUID(as_uuid=True), ForeignKey("guests.id", ondelete="CASCADE"), primary_key=True)
    phone = Column(String(32), nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0, server_default="0")
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    guest = relationship("Guest", back_populates="otp_challenge")
