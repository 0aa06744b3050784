"""Decide whether a guest may see or redeem an offer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.models.guest import FINAL_STAGE, Guest, Visit

from .offers import Offer


class EligibilityStatus(str, Enum):
    ELIGIBLE = "eligible"
    ALREADY_COMPLETED = "already_completed"
    NOT_YET_AVAILABLE = "not_yet_available"
    ALREADY_PASSED = "already_passed"


@dataclass(frozen=True, slots=True)
class EligibilityDecision:
    offer: Offer
    status: EligibilityStatus
    message: str
    current_stage: int
    visit_recorded: bool = False

    @property
    def is_eligible(self) -> bool:
        return self.status is EligibilityStatus.ELIGIBLE


class EligibilityEvaluator:
    """Stage comparison first, then the stored visit as the authoritative guard."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def evaluate(self, offer: Offer, guest: Guest) -> EligibilityDecision:
        stage = int(guest.stage or 0)
        name = _display_name(guest)

        if stage >= FINAL_STAGE:
            return EligibilityDecision(
                offer=offer,
                status=EligibilityStatus.ALREADY_COMPLETED,
                message=f"This funnel has already been completed for {name}.",
                current_stage=stage,
            )

        if stage < offer.required_stage:
            return EligibilityDecision(
                offer=offer,
                status=EligibilityStatus.NOT_YET_AVAILABLE,
                message=(
                    f"This offer ({offer.value}) is not yet available. "
                    f"Please complete the previous step(s). Current stage: {stage}."
                ),
                current_stage=stage,
            )

        # Stage 3 is exactly the free cocktail's redeemable stage and must never read as passed.
        final_offer_ready = offer is Offer.FREE_COCKTAIL and stage == 3
        if stage > offer.required_stage and not final_offer_ready:
            return EligibilityDecision(
                offer=offer,
                status=EligibilityStatus.ALREADY_PASSED,
                message=(
                    f"The {offer.value} offer for {name} appears to have already been passed "
                    f"in the funnel (current stage: {stage})."
                ),
                current_stage=stage,
            )

        if await self.visit_exists(guest.id, offer.visit_number):
            return EligibilityDecision(
                offer=offer,
                status=EligibilityStatus.ALREADY_COMPLETED,
                message=(
                    f"This {offer.value} offer has already been redeemed "
                    f"(Visit {offer.visit_number} recorded)."
                ),
                current_stage=stage,
                visit_recorded=True,
            )

        return EligibilityDecision(
            offer=offer,
            status=EligibilityStatus.ELIGIBLE,
            message=f"{offer.definition.title} {offer.definition.subtitle}",
            current_stage=stage,
        )

    async def visit_exists(self, guest_id, visit_number: int) -> bool:
        stmt = (
            select(Visit.id)
            .where(Visit.guest_id == guest_id, Visit.visit_number == visit_number)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None


def _display_name(guest: Guest) -> str:
    return (guest.full_name or "").strip() or guest.email


__all__ = ["EligibilityDecision", "EligibilityEvaluator", "EligibilityStatus"]
