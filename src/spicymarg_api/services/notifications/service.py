"""Stage notifier: every CRM side effect of a funnel transition lives here."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Awaitable, Callable, Sequence
from uuid import UUID

from loguru import logger

from spicymarg_api.core.settings import Settings
from spicymarg_api.models.guest import utcnow
from spicymarg_api.observability.funnel import FunnelObservabilityStore, get_funnel_store
from spicymarg_api.services.funnel.errors import ConfigurationError
from spicymarg_api.services.funnel.offers import Offer
from spicymarg_api.services.funnel.otp import VerificationResult
from spicymarg_api.services.funnel.redemption import RedemptionResult

from . import templates
from .backend import BrevoCrmBackend, CrmBackend, InMemoryCrmBackend, Recipient


def build_crm_backend(config: Settings) -> CrmBackend:
    """Brevo when an API key is configured; an in-memory dry run in development."""

    if config.brevo_api_key:
        return BrevoCrmBackend(
            api_key=config.brevo_api_key,
            base_url=config.brevo_base_url,
            sms_sender=config.brevo_sms_sender,
            custom_header=config.brevo_custom_header,
            timeout_seconds=config.brevo_timeout_seconds,
        )
    if config.environment == "development":
        logger.warning("BREVO_API_KEY not set; CRM calls are recorded in memory only")
        return InMemoryCrmBackend()
    raise ConfigurationError("BREVO_API_KEY must be configured outside development.")


class StageNotifier:
    """Best-effort CRM updates; failures are logged and never reach the caller."""

    def __init__(
        self,
        backend: CrmBackend,
        *,
        public_app_url: str,
        review_link: str,
        signup_list_ids: Sequence[int] = (),
        voucher_template_id: int,
        final_thanks_template_id: int,
        otp_ttl_seconds: int = 600,
        observability: FunnelObservabilityStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._public_app_url = public_app_url.rstrip("/")
        self._review_link = review_link
        self._signup_list_ids = list(signup_list_ids)
        self._voucher_template_id = voucher_template_id
        self._final_thanks_template_id = final_thanks_template_id
        self._otp_ttl_seconds = otp_ttl_seconds
        self._observability = observability or get_funnel_store()
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, *, backend: CrmBackend | None = None) -> "StageNotifier":
        return cls(
            backend or build_crm_backend(config),
            public_app_url=config.public_app_url,
            review_link=config.review_link,
            signup_list_ids=config.brevo_signup_list_ids,
            voucher_template_id=config.brevo_voucher_template_id,
            final_thanks_template_id=config.brevo_final_thanks_template_id,
            otp_ttl_seconds=config.otp_ttl_seconds,
        )

    @property
    def backend(self) -> CrmBackend:
        return self._backend

    async def notify_signup(self, *, guest_id: UUID, email: str, date_of_birth: date) -> None:
        now = self._clock()
        link = templates.voucher_link(self._public_app_url, guest_id, email)
        attributes = templates.signup_attributes(
            guest_id=guest_id,
            date_of_birth=date_of_birth,
            voucher_url=link,
            now=now,
        )
        await self._dispatch(
            "contact",
            guest_id,
            lambda: self._backend.upsert_contact(email, attributes, list_ids=self._signup_list_ids),
        )
        await self._dispatch(
            "email",
            guest_id,
            lambda: self._backend.send_transactional_message(
                self._voucher_template_id,
                Recipient(email=email),
                templates.voucher_email_params(email=email, voucher_url=link),
            ),
        )

    async def send_verification_code(self, guest_id: UUID, phone: str, code: str) -> bool:
        """Deliver an OTP; unlike the other hooks the caller needs the outcome."""

        return await self._dispatch(
            "sms",
            guest_id,
            lambda: self._backend.send_sms(
                phone,
                templates.verification_sms_text(code, ttl_seconds=self._otp_ttl_seconds),
            ),
        )

    async def notify_verified(self, result: VerificationResult) -> None:
        attributes = templates.verified_attributes(
            guest_id=result.guest_id,
            full_name=result.full_name,
            phone=result.phone,
            now=self._clock(),
        )
        await self._dispatch(
            "contact",
            result.guest_id,
            lambda: self._backend.upsert_contact(result.email, attributes),
        )

    async def notify(self, post_state: RedemptionResult) -> None:
        """Mirror a confirmed visit into the CRM using the post-transition snapshot."""

        now = self._clock()
        if post_state.new_stage in (2, 3):
            next_offer = post_state.offer.next_offer or Offer.FREE_COCKTAIL
            attributes = templates.progress_attributes(
                guest_id=post_state.guest_id,
                full_name=post_state.full_name,
                new_stage=post_state.new_stage,
                next_offer=next_offer,
                base_url=self._public_app_url,
                review_link=self._review_link,
                now=now,
            )
            await self._dispatch(
                "contact",
                post_state.guest_id,
                lambda: self._backend.upsert_contact(post_state.email, attributes),
            )
            return

        if post_state.new_stage == 4:
            attributes = templates.completion_attributes(now=now)
            await self._dispatch(
                "contact",
                post_state.guest_id,
                lambda: self._backend.upsert_contact(post_state.email, attributes),
            )
            await self._dispatch(
                "email",
                post_state.guest_id,
                lambda: self._backend.send_transactional_message(
                    self._final_thanks_template_id,
                    Recipient(email=post_state.email, name=post_state.full_name),
                    templates.final_thanks_params(
                        full_name=post_state.full_name,
                        review_link=self._review_link,
                    ),
                ),
            )
            return

        logger.warning("No notification defined for stage", guest_id=str(post_state.guest_id), stage=post_state.new_stage)

    async def _dispatch(self, channel: str, guest_id: UUID, send: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await send()
        except Exception as exc:
            self._observability.record_notification(channel, success=False)
            logger.exception(
                "Funnel notification failed",
                channel=channel,
                guest_id=str(guest_id),
                error=str(exc),
            )
            return False
        self._observability.record_notification(channel, success=True)
        logger.debug("Funnel notification sent", channel=channel, guest_id=str(guest_id))
        return True


__all__ = ["StageNotifier", "build_crm_backend"]
