"""Funnel facade: runs each flow, then hands the post-state to the notifier."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from spicymarg_api.core.settings import Settings, settings as default_settings
from spicymarg_api.models.guest import Guest
from spicymarg_api.services.notifications import StageNotifier

from .eligibility import EligibilityDecision, EligibilityEvaluator
from .errors import GuestNotFoundError
from .offers import Offer
from .otp import OtpIssue, OtpVerificationFlow, VerificationResult
from .redemption import RedemptionEngine, RedemptionResult, parse_guest_id
from .signup import SignupFlow, SignupResult
from .tokens import decode_token


@dataclass(frozen=True, slots=True)
class OfferView:
    guest: Guest
    display_name: str
    decision: EligibilityDecision


@dataclass(frozen=True, slots=True)
class VoucherStatus:
    guest: Guest
    claimable: bool


class FunnelService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: StageNotifier,
        *,
        config: Settings | None = None,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._config = config or default_settings
        self._evaluator = EligibilityEvaluator(session)
        self._signup = SignupFlow(session, config=self._config)
        self._otp = OtpVerificationFlow(session, sender=notifier, config=self._config)
        self._redemption = RedemptionEngine(session, evaluator=self._evaluator)

    async def get_guest(self, guest_id: object) -> Guest:
        guest_uuid = parse_guest_id(guest_id)
        guest = await self._session.get(Guest, guest_uuid, populate_existing=True)
        if guest is None:
            raise GuestNotFoundError(guest_uuid)
        return guest

    async def signup(self, email: str | None, date_of_birth: date | None) -> SignupResult:
        result = await self._signup.signup(email, date_of_birth)
        if result.is_new_signup:
            await self._notifier.notify_signup(
                guest_id=result.guest_id,
                email=result.email,
                date_of_birth=result.date_of_birth,
            )
        return result

    async def request_code(self, guest_id: object, phone: str | None) -> OtpIssue:
        return await self._otp.request_code(guest_id, phone)

    async def verify_code(self, guest_id: object, code: str | None, full_name: str | None) -> VerificationResult:
        result = await self._otp.verify_code(guest_id, code, full_name)
        await self._notifier.notify_verified(result)
        return result

    async def evaluate(self, offer: Offer, guest_id: object) -> EligibilityDecision:
        guest = await self.get_guest(guest_id)
        return await self._evaluator.evaluate(offer, guest)

    async def voucher_status(self, token: str) -> VoucherStatus:
        decoded = decode_token(token)
        guest = await self.get_guest(decoded.guest_id)
        return VoucherStatus(guest=guest, claimable=guest.stage == 0)

    async def view_offer(self, offer: Offer, token: str) -> OfferView:
        decoded = decode_token(token)
        guest = await self.get_guest(decoded.guest_id)
        decision = await self._evaluator.evaluate(offer, guest)
        display_name = (guest.full_name or "").strip() or decoded.secondary or guest.email
        return OfferView(guest=guest, display_name=display_name, decision=decision)

    async def confirm_visit(self, guest_id: object, expected_visit_number: object) -> RedemptionResult:
        result = await self._redemption.confirm_visit(guest_id, expected_visit_number)
        await self._notifier.notify(result)
        return result

    async def confirm_offer(self, offer: Offer, token: str) -> RedemptionResult:
        decoded = decode_token(token)
        return await self.confirm_visit(decoded.guest_id, offer.visit_number)


__all__ = ["FunnelService", "OfferView", "VoucherStatus"]
