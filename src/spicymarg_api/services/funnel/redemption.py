"""Atomic visit confirmation: record the visit and advance the guest stage."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.models.guest import Guest, Visit, utcnow
from spicymarg_api.observability.funnel import FunnelObservabilityStore, get_funnel_store

from .eligibility import EligibilityEvaluator, EligibilityStatus
from .errors import (
    AlreadyRedeemedError,
    GuestNotFoundError,
    InvalidInputError,
    StageMismatchError,
    TransientError,
)
from .offers import VISIT_NUMBERS, Offer


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    """Post-transition snapshot; downstream notifications must use these values."""

    guest_id: UUID
    full_name: str | None
    email: str
    new_stage: int
    visit_number: int

    @property
    def offer(self) -> Offer:
        return Offer.for_visit(self.visit_number)


def parse_guest_id(raw: object) -> UUID:
    """Validate a caller-supplied guest id; unparseable ids identify nobody."""

    if isinstance(raw, UUID):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidInputError("A guest id is required.")
    try:
        return UUID(raw.strip())
    except ValueError as exc:
        raise GuestNotFoundError(raw) from exc


class RedemptionEngine:
    """Confirm a visit in one transaction guarded by the visit uniqueness constraint."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        evaluator: EligibilityEvaluator | None = None,
        observability: FunnelObservabilityStore | None = None,
    ) -> None:
        self._session = session
        self._evaluator = evaluator or EligibilityEvaluator(session)
        self._observability = observability or get_funnel_store()

    async def confirm_visit(self, guest_id: object, expected_visit_number: object) -> RedemptionResult:
        if (
            isinstance(expected_visit_number, bool)
            or not isinstance(expected_visit_number, int)
            or expected_visit_number not in VISIT_NUMBERS
        ):
            raise InvalidInputError("Visit number must be 1, 2 or 3.")
        visit_number = expected_visit_number
        guest_uuid = parse_guest_id(guest_id)

        try:
            return await self._confirm(guest_uuid, visit_number)
        except (GuestNotFoundError, AlreadyRedeemedError, StageMismatchError):
            raise
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception(
                "Visit confirmation failed against the backing store",
                guest_id=str(guest_uuid),
                visit_number=visit_number,
            )
            raise TransientError("Visit could not be recorded, please try again.") from exc

    async def _confirm(self, guest_id: UUID, visit_number: int) -> RedemptionResult:
        guest = await self._session.get(Guest, guest_id, populate_existing=True)
        if guest is None:
            raise GuestNotFoundError(guest_id)

        full_name, email = guest.full_name, guest.email
        offer = Offer.for_visit(visit_number)
        decision = await self._evaluator.evaluate(offer, guest)
        if decision.status is EligibilityStatus.NOT_YET_AVAILABLE:
            await self._reject("stage_mismatch", guest_id, visit_number)
            raise StageMismatchError(decision.message, current_stage=decision.current_stage)
        if not decision.is_eligible:
            await self._reject(decision.status.value, guest_id, visit_number)
            raise AlreadyRedeemedError(decision.message)

        now = utcnow()
        self._session.add(Visit(guest_id=guest_id, visit_number=visit_number, created_at=now))
        try:
            await self._session.flush()
        except IntegrityError as exc:
            await self._session.rollback()
            self._observability.record_conflict("duplicate_visit")
            logger.warning("Detected race when recording visit", guest_id=str(guest_id), visit_number=visit_number)
            raise AlreadyRedeemedError(
                f"This {offer.value} offer has already been redeemed (Visit {visit_number} recorded)."
            ) from exc

        new_stage = visit_number + 1
        stmt = (
            update(Guest)
            .where(Guest.id == guest_id, Guest.stage == visit_number)
            .values(stage=new_stage, last_stage_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            await self._session.rollback()
            self._observability.record_conflict("stage_changed")
            logger.warning("Guest stage moved during visit confirmation", guest_id=str(guest_id), visit_number=visit_number)
            raise StageMismatchError(
                f"Guest stage changed while confirming visit {visit_number}; reload and try again."
            )

        await self._session.commit()
        self._observability.record_redemption(visit_number)
        logger.info("Visit confirmed", guest_id=str(guest_id), visit_number=visit_number, new_stage=new_stage)

        return RedemptionResult(
            guest_id=guest_id,
            full_name=full_name,
            email=email,
            new_stage=new_stage,
            visit_number=visit_number,
        )

    async def _reject(self, reason: str, guest_id: UUID, visit_number: int) -> None:
        await self._session.rollback()
        self._observability.record_conflict(reason)
        logger.info("Visit confirmation refused", guest_id=str(guest_id), visit_number=visit_number, reason=reason)


__all__ = ["RedemptionEngine", "RedemptionResult", "parse_guest_id"]
